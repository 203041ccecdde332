"""Hardware, persistence and logging services."""

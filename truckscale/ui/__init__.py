"""User interface adapters (Tk touch screen and console)."""

"""Data adapters: candle validation and DataFrame/CSV conversion."""

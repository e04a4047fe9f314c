"""askdata: ask questions about relational data and get render-ready charts back."""

__version__ = "0.1.0"

"""Tournament registration core: capacity-bounded admission, FIFO waitlists and category membership."""

__version__ = "1.0.0"

"""Note overlay: state machine, rendering and the PyQt6 surface."""

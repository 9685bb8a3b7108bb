"""
LED matrix applet board server package.

This package provides:
- A TCP server where applet clients claim one of four panel slots
- Applet state and the slot table shared between connections
- A compositor that drives the 9x34 LED matrix at a fixed frame rate
- Serial communication with the LED matrix module
"""

__version__ = "0.1.0"

"""replywatch -- Response-completion detection for non-instrumented apps.

This package forwards a prompt into a locally running graphical
application and decides, without any cooperating signal from that
application, when it has finished answering. Detection is pluggable:
response-file watching, clipboard diffing, screen stabilization by
image hashing, with optional text recognition on captured screens.
"""

__version__ = "0.1.0"

"""
Ticket Assistant - natural-language queries over helpdesk tickets
"""
__version__ = "1.0.0"

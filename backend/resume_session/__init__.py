"""
Resume session backend - draft lifecycle services and the resume record API
"""
__version__ = "0.1.0"

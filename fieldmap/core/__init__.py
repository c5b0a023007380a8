"""
🔧 Core Package
Settings, structured logging and the error taxonomy
"""

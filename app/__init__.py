"""
                QR Menu Ordering System

Restaurant order backend with a real-time staff dashboard channel and an
in-memory fallback when the database is unavailable.

Author: Khalil_Bannouri
Version: 4.0.0
License: MIT
"""

__version__ = "4.0.0"
__author__ = "Khalil_Bannouri"

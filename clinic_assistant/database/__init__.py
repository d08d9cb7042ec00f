"""
Database package exports for Supabase integration.
"""

from clinic_assistant.database.supabase import ClinicRepository, DatabaseError

__all__ = ["ClinicRepository", "DatabaseError"]

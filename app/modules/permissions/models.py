# Supabase table: permission_definitions
# Populated only by app/scripts/seed_permission_definitions.py; never written by end users.
# Full DDL lives in app/database/migrations/001_permission_engine.sql

"""
Expected Supabase table structure:

permission_definitions:
- key: text (primary key) - e.g., "finance.invoice.create"
- module: text (not null) - e.g., "finance"
- resource: text (not null) - e.g., "invoice"
- action: text (not null) - e.g., "create"
- display_name: text (not null)
- display_name_ar: text (nullable)
- description: text (nullable)
- description_ar: text (nullable)
- is_delegatable: boolean (default: true)
- created_at: timestamp (default: now())
"""

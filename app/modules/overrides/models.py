# Supabase table: member_permission_overrides
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

member_permission_overrides:
- id: uuid (primary key)
- membership_id: uuid (foreign key to tenant_members.id, on delete cascade)
- permission_key: text (foreign key to permission_definitions.key)
- granted: boolean (not null) - true force-adds the key, false force-removes it
- granted_by: uuid (nullable) - actor user id
- granted_at: timestamp (default: now())
- unique constraint on (membership_id, permission_key) - upsert conflict target
"""

# Supabase table: delegation_audit_log
# Append-only; the engine inserts and reads, never updates or deletes

"""
Expected Supabase table structure:

delegation_audit_log:
- id: uuid (primary key)
- tenant_id: uuid (not null) - tenant of the target membership
- actor_user_id: uuid (not null) - user who made the change
- target_member_id: uuid (not null) - membership the change applies to
- permission_key: text (not null)
- action: text (not null) - values: granted, revoked
- created_at: timestamp (default: clock_timestamp())
- index on (tenant_id, created_at desc)
"""

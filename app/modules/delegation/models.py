# Supabase table: delegation_scopes
# Rows are written only on behalf of the tenant owner (checked in routes.py, not here)

"""
Expected Supabase table structure:

delegation_scopes:
- id: uuid (primary key)
- tenant_id: uuid (not null)
- grantor_member_id: uuid (foreign key to tenant_members.id, on delete cascade)
- permission_key: text (foreign key to permission_definitions.key)
- can_delegate: boolean (default: false)
- created_by: uuid (nullable) - owner user id
- created_at: timestamp (default: now())
- unique constraint on (tenant_id, grantor_member_id, permission_key)
"""

# Supabase table: tenant_members
# Owned by the tenant membership service; the permission engine only reads it.

"""
Expected Supabase table structure:

tenant_members:
- id: uuid (primary key) - the membership id every permission row is keyed on
- tenant_id: uuid (not null)
- user_id: uuid (not null) - Supabase Auth user id
- role: text (not null) - values: owner, admin, foreman, vet, trainer, employee, manager
- is_active: boolean (default: true)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())
- unique constraint on (tenant_id, user_id)
"""

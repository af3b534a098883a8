# Supabase tables: permission_bundles, bundle_permissions, membership_bundle_assignments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py; multi-row writes go
# through the create_permission_bundle / replace_bundle_permissions functions

"""
Expected Supabase table structure:

permission_bundles:
- id: uuid (primary key)
- tenant_id: uuid (not null)
- name: text (not null)
- description: text (nullable)
- is_system: boolean (default: false) - system bundles cannot be deleted
- created_by: uuid (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

bundle_permissions:
- bundle_id: uuid (foreign key to permission_bundles.id, on delete cascade)
- permission_key: text (foreign key to permission_definitions.key)
- primary key (bundle_id, permission_key)

membership_bundle_assignments:
- membership_id: uuid (foreign key to tenant_members.id, on delete cascade)
- bundle_id: uuid (foreign key to permission_bundles.id, on delete cascade)
- assigned_by: uuid (nullable)
- assigned_at: timestamp (default: now())
- primary key (membership_id, bundle_id)
"""

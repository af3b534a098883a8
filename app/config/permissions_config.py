"""
Permission Definitions Configuration
This config defines the catalog of fine-grained permission keys for every module.
Used by the seed script to populate/update the permission_definitions table.
Keys are "<module>.<resource>.<action>" and are never renamed once published.
"""

# Key that lets a non-owner member manage bundles and delegate permissions
DELEGATE_PERMISSION_KEY = "admin.permissions.delegate"
VIEW_PERMISSIONS_KEY = "admin.permissions.view"

# Define modules, their resources and the actions available on each
MODULES = {
    "admin": {
        "description": "Tenant administration",
        "resources": {
            "permissions": ["view", "delegate"],
            "members": ["view", "invite", "remove"],
            "settings": ["view", "edit"],
        },
    },
    "horses": {
        "description": "Horse records",
        "resources": {
            "horse": ["view", "create", "edit", "delete", "export"],
        },
    },
    "finance": {
        "description": "Invoices, payments and expenses",
        "resources": {
            "invoice": ["view", "create", "edit", "delete", "print", "send"],
            "payment": ["view", "create"],
            "expenses": ["view", "create", "approve"],
            "ledger": ["view"],
        },
    },
    "clients": {
        "description": "Client directory",
        "resources": {
            "client": ["view", "create", "edit", "delete"],
            "statement": ["view", "export"],
        },
    },
    "vet": {
        "description": "Veterinary treatments",
        "resources": {
            "treatment": ["read", "create", "edit", "delete"],
        },
    },
    "laboratory": {
        "description": "Laboratory samples and results",
        "resources": {
            "samples": ["view", "create", "edit"],
            "horses": ["edit", "export"],
            "billing": ["create"],
        },
    },
    "breeding": {
        "description": "Breeding attempts and pregnancies",
        "resources": {
            "attempt": ["view", "create", "edit"],
            "pregnancy": ["view", "create", "edit"],
        },
    },
    "hr": {
        "description": "Employees and assignments",
        "resources": {
            "employee": ["view", "create", "edit", "delete"],
        },
    },
    "academy": {
        "description": "Sessions and bookings",
        "resources": {
            "session": ["view", "create", "edit"],
            "booking": ["view", "manage"],
        },
    },
}

# Keys that only the owner may hand out; members can hold them but never delegate them
NON_DELEGATABLE_PERMISSIONS = {
    "admin.members.remove",
    "admin.settings.edit",
    "finance.invoice.delete",
    "hr.employee.delete",
}

# Display names that differ from the generated "<Action> <resource>" form
DISPLAY_NAMES = {
    "admin.permissions.delegate": "Delegate permissions to other members",
    "admin.permissions.view": "View member permissions and audit log",
    "finance.invoice.send": "Send invoices to clients",
    "laboratory.billing.create": "Create laboratory billing",
}


def get_permission_catalog():
    """
    Returns the list of permission definitions generated from MODULES
    Format: [
        {
            "key": "finance.invoice.create",
            "module": "finance",
            "resource": "invoice",
            "action": "create",
            "display_name": "Create invoice",
            "description": "...",
            "is_delegatable": True
        },
        ...
    ]
    """
    definitions = []

    for module_name, module_config in MODULES.items():
        for resource, actions in module_config["resources"].items():
            for action in actions:
                key = f"{module_name}.{resource}.{action}"
                display_name = DISPLAY_NAMES.get(key, f"{action.capitalize()} {resource}")

                definitions.append({
                    "key": key,
                    "module": module_name,
                    "resource": resource,
                    "action": action,
                    "display_name": display_name,
                    "description": f"{display_name} ({module_config['description']})",
                    "is_delegatable": key not in NON_DELEGATABLE_PERMISSIONS,
                })

    return definitions


# Export the catalog for use in the seed script
PERMISSION_CATALOG = get_permission_catalog()

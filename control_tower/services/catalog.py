from __future__ import annotations

from dataclasses import dataclass

from ..models import ConnectorCategory, ConnectorStatus, SyncFrequency


@dataclass(frozen=True)
class RoleTemplate:
    role_key: str
    role_label: str
    permissions: tuple[str, ...]


@dataclass(frozen=True)
class FieldMappingTemplate:
    external_object: str
    local_object: str
    mapping: dict[str, str]


@dataclass(frozen=True)
class ConnectorDefinition:
    key: str
    name: str
    category: ConnectorCategory
    description: str
    requires_api_key: bool
    scopes: tuple[str, ...]
    regions: tuple[str, ...]
    compliance: tuple[str, ...]
    owner: str
    sync_frequency: SyncFrequency = SyncFrequency.MANUAL
    initial_status: ConnectorStatus = ConnectorStatus.NOT_CONNECTED
    role_templates: tuple[RoleTemplate, ...] = ()
    field_mapping_templates: tuple[FieldMappingTemplate, ...] = ()


_STANDARD_ROLES = (
    RoleTemplate("owner", "Connector Owner", ("manage_connection", "manage_mappings", "manage_roles", "trigger_sync")),
    RoleTemplate("operator", "Operator", ("manage_incidents", "trigger_sync")),
    RoleTemplate("read_only", "Read only", ("view_data",)),
)

CONNECTOR_CATALOG: tuple[ConnectorDefinition, ...] = (
    ConnectorDefinition(
        key="salesforce",
        name="Salesforce",
        category=ConnectorCategory.CRM,
        description="Two-way pipeline sync for opportunities, leads, and hiring attribution.",
        requires_api_key=False,
        scopes=("accounts:read", "opportunities:write", "leads:read"),
        regions=("us-east-1", "eu-west-1"),
        compliance=("SOC 2", "GDPR", "ISO 27001"),
        owner="Revenue Operations",
        sync_frequency=SyncFrequency.HOURLY,
        role_templates=(
            RoleTemplate("owner", "CRM Owner", ("manage_connection", "manage_mappings", "manage_roles", "trigger_sync")),
            RoleTemplate("analyst", "Revenue Operations Analyst", ("view_data", "manage_mappings", "trigger_sync")),
            RoleTemplate("read_only", "Read only", ("view_data",)),
        ),
        field_mapping_templates=(
            FieldMappingTemplate(
                "Lead",
                "Candidate",
                {"email": "Email", "firstName": "FirstName", "lastName": "LastName", "companyName": "Company"},
            ),
            FieldMappingTemplate(
                "Opportunity",
                "HiringPipeline",
                {"requisitionTitle": "Name", "stage": "StageName", "projectedValue": "Amount"},
            ),
        ),
    ),
    ConnectorDefinition(
        key="hubspot",
        name="HubSpot",
        category=ConnectorCategory.CRM,
        description="Nurture program sync, candidate marketing attribution, and list segmentation.",
        requires_api_key=False,
        scopes=("crm.objects.contacts.read", "crm.objects.deals.write"),
        regions=("eu-central-1",),
        compliance=("SOC 2", "GDPR"),
        owner="Growth Marketing",
        sync_frequency=SyncFrequency.DAILY,
        role_templates=(
            RoleTemplate("marketing_owner", "Marketing Owner", ("manage_connection", "manage_mappings", "trigger_sync")),
            RoleTemplate("automation", "Automation Manager", ("manage_mappings", "trigger_sync", "manage_incidents")),
            RoleTemplate("viewer", "Viewer", ("view_data",)),
        ),
        field_mapping_templates=(
            FieldMappingTemplate(
                "Contact",
                "Candidate",
                {"email": "email", "firstName": "firstname", "lastName": "lastname", "phone": "phone"},
            ),
        ),
    ),
    ConnectorDefinition(
        key="monday",
        name="monday.com",
        category=ConnectorCategory.WORK_MANAGEMENT,
        description="Project plan sync for hiring pods, interview loops, and onboarding milestones.",
        requires_api_key=True,
        scopes=("boards:read", "boards:write", "webhooks:manage"),
        regions=("us-east-1",),
        compliance=("SOC 2", "GDPR"),
        owner="Talent Operations",
        sync_frequency=SyncFrequency.DAILY,
        role_templates=(
            RoleTemplate("workspace_admin", "Workspace Admin", ("manage_connection", "manage_mappings", "manage_roles", "trigger_sync")),
            RoleTemplate("pod_lead", "Hiring Pod Lead", ("manage_mappings", "trigger_sync")),
            RoleTemplate("observer", "Observer", ("view_data",)),
        ),
        field_mapping_templates=(
            FieldMappingTemplate(
                "BoardItem",
                "HiringTask",
                {"taskName": "name", "status": "status", "dueDate": "due_date", "assignee": "owner"},
            ),
        ),
    ),
    ConnectorDefinition(
        key="slack",
        name="Slack",
        category=ConnectorCategory.COMMUNICATION,
        description="Channel alerts, digests, and approvals delivered to recruiting teams.",
        requires_api_key=False,
        scopes=("chat:write", "channels:manage"),
        regions=("us-west-2",),
        compliance=("SOC 2", "HIPAA"),
        owner="Internal Communications",
        initial_status=ConnectorStatus.CONNECTED,
        role_templates=_STANDARD_ROLES,
    ),
    ConnectorDefinition(
        key="google-drive",
        name="Google Drive",
        category=ConnectorCategory.CONTENT,
        description="Offer templates, playbooks, and collateral stored in Drive workspaces.",
        requires_api_key=False,
        scopes=("drive.file", "drive.metadata.readonly"),
        regions=("us-west-1", "asia-southeast1"),
        compliance=("SOC 2", "ISO 27017"),
        owner="People Operations",
        initial_status=ConnectorStatus.CONNECTED,
        role_templates=_STANDARD_ROLES,
    ),
    ConnectorDefinition(
        key="openai",
        name="OpenAI",
        category=ConnectorCategory.AI,
        description="Job description drafting and intelligence powered by GPT models.",
        requires_api_key=True,
        scopes=("chat.completions", "embeddings"),
        regions=("us-east-1",),
        compliance=("SOC 2",),
        owner="Intelligence Ops",
        role_templates=_STANDARD_ROLES,
    ),
    ConnectorDefinition(
        key="claude",
        name="Claude",
        category=ConnectorCategory.AI,
        description="Interview summarisation and concierge workflows using Anthropic Claude.",
        requires_api_key=True,
        scopes=("text:generation",),
        regions=("us-east-1",),
        compliance=("SOC 2",),
        owner="Intelligence Ops",
        role_templates=_STANDARD_ROLES,
    ),
    ConnectorDefinition(
        key="deepseek",
        name="DeepSeek",
        category=ConnectorCategory.AI,
        description="Reasoning models for complex hiring analytics.",
        requires_api_key=True,
        scopes=("analysis",),
        regions=("ap-southeast-1",),
        compliance=("ISO 27001",),
        owner="Strategic Analytics",
        role_templates=_STANDARD_ROLES,
    ),
    ConnectorDefinition(
        key="x",
        name="X (Twitter)",
        category=ConnectorCategory.COMMUNICATION,
        description="Employer brand publishing and community engagement on X.",
        requires_api_key=False,
        scopes=("tweet.read", "tweet.write"),
        regions=("us-east-1",),
        compliance=("SOC 2",),
        owner="Employer Brand",
        initial_status=ConnectorStatus.CONNECTED,
        role_templates=_STANDARD_ROLES,
    ),
)

_BY_KEY: dict[str, ConnectorDefinition] = {definition.key: definition for definition in CONNECTOR_CATALOG}


def get_definition(key: str) -> ConnectorDefinition | None:
    return _BY_KEY.get(key)


def role_templates_for(key: str) -> tuple[RoleTemplate, ...]:
    definition = _BY_KEY.get(key)
    if definition is None or not definition.role_templates:
        return _STANDARD_ROLES
    return definition.role_templates


def catalog_defaults() -> dict[str, object]:
    return {
        "connectors": {
            definition.key: {
                "name": definition.name,
                "category": definition.category.value,
                "requires_api_key": definition.requires_api_key,
                "scopes": list(definition.scopes),
                "role_templates": [
                    {"role_key": role.role_key, "role_label": role.role_label, "permissions": list(role.permissions)}
                    for role in role_templates_for(definition.key)
                ],
                "field_mapping_templates": [
                    {
                        "external_object": template.external_object,
                        "local_object": template.local_object,
                        "mapping": dict(template.mapping),
                    }
                    for template in definition.field_mapping_templates
                ],
            }
            for definition in CONNECTOR_CATALOG
        },
    }

"""Service catalog and deployment plans.

The catalog directory holds two files:

    services.json   Services offered to consumers, each with its plans
    plans.json      Deployment templates; a plan uses the template whose
                    name equals the plan name

Public API (the "studs"):
    Service, ServicePlan: Catalog entries offered to consumers
    Catalog: Loaded services plus deployment templates
    load_catalog: Read a catalog directory
    find_plan: Look up a plan by service ID and plan ID
    find_deployment_template: Look up the template for a plan
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..clients.models import DeploymentTemplate
from ..exceptions import PlanNotFoundError, TemplateNotFoundError

_logger = logging.getLogger(__name__)

PLANS_FILE = "plans.json"
SERVICES_FILE = "services.json"


class ServicePlan(BaseModel):
    id: str = Field(..., description="Plan ID sent by the consumer")
    name: str = Field(..., description="Plan name; matches a deployment template name")
    description: str = ""
    free: bool | None = None
    bindable: bool | None = None


class Service(BaseModel):
    id: str = Field(..., description="Service ID sent by the consumer")
    name: str
    description: str = ""
    bindable: bool = True
    plan_updateable: bool = False
    tags: list[str] = Field(default_factory=list)
    plans: list[ServicePlan] = Field(default_factory=list)


class Catalog(BaseModel):
    services: list[Service] = Field(default_factory=list)
    templates: list[DeploymentTemplate] = Field(default_factory=list)

    def find_plan(self, service_id: str, plan_id: str) -> ServicePlan:
        return find_plan(self.services, service_id, plan_id)


def _read(path: Path, adapter: TypeAdapter) -> list:
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")
    try:
        return adapter.validate_json(path.read_text())
    except ValidationError as e:
        raise ValueError(f"Invalid catalog file {path}: {e}") from e


def load_catalog(directory: Path | str) -> Catalog:
    """Load services and deployment templates from a catalog directory.

    Args:
        directory: Directory containing plans.json and services.json

    Returns:
        Loaded Catalog

    Raises:
        FileNotFoundError: If either file is missing
        ValueError: If either file does not parse
    """
    directory = Path(directory)
    templates = _read(directory / PLANS_FILE, TypeAdapter(list[DeploymentTemplate]))
    _logger.info("Plans file loaded from %s", directory / PLANS_FILE)
    services = _read(directory / SERVICES_FILE, TypeAdapter(list[Service]))
    _logger.info("Services file loaded from %s", directory / SERVICES_FILE)
    return Catalog(services=services, templates=templates)


def find_plan(services: list[Service], service_id: str, plan_id: str) -> ServicePlan:
    """Return the plan with plan_id offered by the service with service_id.

    Raises:
        PlanNotFoundError: If no such service/plan pair exists
    """
    for service in services:
        if service.id != service_id:
            continue
        for plan in service.plans:
            if plan.id == plan_id:
                return plan
    raise PlanNotFoundError(
        f"could not find service with ID: {service_id} and plan with ID: {plan_id}"
    )


def find_deployment_template(
    templates: list[DeploymentTemplate], plan: ServicePlan
) -> DeploymentTemplate:
    """Return a copy of the template whose name matches the plan name.

    A copy is returned so callers can rename it without touching the catalog.

    Raises:
        TemplateNotFoundError: If no template matches
    """
    for template in templates:
        if template.name == plan.name:
            return template.model_copy(deep=True)
    raise TemplateNotFoundError(
        f"could not find a deployment template that matches plan ID: {plan.id}"
    )


__all__ = [
    "Service",
    "ServicePlan",
    "Catalog",
    "load_catalog",
    "find_plan",
    "find_deployment_template",
]

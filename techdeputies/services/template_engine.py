"""
Email Template Engine

Registry of email templates backed by Jinja2. Built-in templates live as
``<id>.html`` / ``<id>.txt`` files under ``templates/email``; templates created
at runtime carry their sources inline. Each template declares the variables it
expects so bad render calls are rejected before anything is sent.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

VARIABLE_TYPES = ("string", "number", "boolean", "date", "url", "email", "list", "object")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class TemplateError(Exception):
    """Raised for unknown, inactive or invalid template operations."""


class TemplateValidationError(TemplateError):
    def __init__(self, template_id: str, errors: List[str]):
        self.template_id = template_id
        self.errors = errors
        super().__init__(f"Template '{template_id}' data invalid: {'; '.join(errors)}")


@dataclass
class TemplateVariable:
    type: str = "string"
    required: bool = True
    description: str = ""


@dataclass
class EmailTemplate:
    id: str
    name: str
    subject: str
    variables: Dict[str, TemplateVariable] = field(default_factory=dict)
    html_source: Optional[str] = None
    text_source: Optional[str] = None
    is_active: bool = True
    builtin: bool = False
    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "subject": self.subject,
            "variables": {
                key: {"type": v.type, "required": v.required, "description": v.description}
                for key, v in self.variables.items()
            },
            "is_active": self.is_active,
            "builtin": self.builtin,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _var(type_: str = "string", required: bool = True, description: str = "") -> TemplateVariable:
    return TemplateVariable(type=type_, required=required, description=description)


def _builtin_templates() -> List[EmailTemplate]:
    return [
        EmailTemplate(
            id="welcome",
            name="Welcome / Verify Email",
            subject="Welcome to The Tech Deputies",
            variables={"user_name": _var(), "verify_url": _var("url")},
        ),
        EmailTemplate(
            id="password-reset",
            name="Password Reset",
            subject="Password Reset - The Tech Deputies",
            variables={
                "user_name": _var(),
                "reset_url": _var("url"),
                "expires_in": _var(),
                "reason": _var(required=False),
            },
        ),
        EmailTemplate(
            id="admin-notification",
            name="Admin Action Notification",
            subject="Admin Action: {{ action }} - The Tech Deputies",
            variables={
                "admin_name": _var(),
                "action": _var(),
                "target_email": _var("email"),
                "target_name": _var(),
                "timestamp": _var("date"),
                "details": _var("object", required=False),
            },
        ),
        EmailTemplate(
            id="course-purchase",
            name="Course Purchase Confirmation",
            subject="Course Purchase Confirmation - The Tech Deputies",
            variables={
                "user_name": _var(),
                "course_title": _var(),
                "amount": _var(),
                "course_url": _var("url"),
                "gift_card_amount": _var(required=False),
            },
        ),
        EmailTemplate(
            id="gift-card",
            name="Gift Card Delivery",
            subject="Gift Card Confirmation - The Tech Deputies",
            variables={
                "recipient_name": _var(),
                "purchaser_name": _var(),
                "amount": _var(),
                "code": _var(),
                "redeem_url": _var("url"),
                "message": _var(required=False),
            },
        ),
        EmailTemplate(
            id="booking-confirmation",
            name="Booking Confirmation",
            subject="Confirmed: {{ event_title }} - The Tech Deputies",
            variables={
                "user_name": _var(),
                "event_title": _var(),
                "event_date": _var(),
                "event_time": _var(),
            },
        ),
        EmailTemplate(
            id="booking-cancellation",
            name="Booking Cancellation",
            subject="Cancelled: {{ event_title }} - The Tech Deputies",
            variables={
                "user_name": _var(),
                "event_title": _var(),
                "event_date": _var(),
                "event_time": _var(),
                "booking_url": _var("url"),
            },
        ),
        EmailTemplate(
            id="temporary-password",
            name="Temporary Password",
            subject="Your Temporary Password - The Tech Deputies",
            variables={
                "user_name": _var(),
                "temporary_password": _var(),
                "login_url": _var("url"),
            },
        ),
        EmailTemplate(
            id="subscription-confirmed",
            name="Subscription Confirmed",
            subject="Welcome to {{ plan_name }}! - The Tech Deputies",
            variables={
                "plan_name": _var(),
                "features": _var("list", required=False),
                "dashboard_url": _var("url"),
            },
        ),
        EmailTemplate(
            id="subscription-cancelled",
            name="Subscription Cancelled",
            subject="Subscription Cancelled - The Tech Deputies",
            variables={"plan_name": _var(), "plans_url": _var("url")},
        ),
    ]


def _type_matches(expected: str, value: Any) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "date":
        return isinstance(value, (date, datetime, str))
    if expected == "url":
        return isinstance(value, str) and value.startswith(("http://", "https://"))
    if expected == "email":
        return isinstance(value, str) and bool(_EMAIL_RE.match(value))
    if expected == "list":
        return isinstance(value, (list, tuple))
    if expected == "object":
        return isinstance(value, dict)
    return True


def html_to_text(html_content: str) -> str:
    """Convert HTML to basic text content."""
    text = re.sub(r'<[^>]+>', '', html_content)
    text = text.replace('&amp;', '&').replace('&lt;', '<').replace('&gt;', '>')
    text = text.replace('&quot;', '"').replace('&#39;', "'")
    return re.sub(r'\s+', ' ', text).strip()


class TemplateEngine:
    """In-memory template registry rendering through a shared Jinja2 environment."""

    def __init__(self, template_dir: Optional[Path] = None):
        self.template_dir = Path(template_dir or DEFAULT_TEMPLATE_DIR)
        if not self.template_dir.exists():
            logger.warning("Email template directory not found: %s", self.template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
            keep_trailing_newline=True,
        )
        self._html_env = Environment(autoescape=True)
        self._templates: Dict[str, EmailTemplate] = {t.id: t for t in _builtin_templates()}
        for t in self._templates.values():
            t.builtin = True

    # Registry

    def list_templates(self, include_inactive: bool = False) -> List[EmailTemplate]:
        return [t for t in self._templates.values() if include_inactive or t.is_active]

    def get_template(self, template_id: str) -> Optional[EmailTemplate]:
        return self._templates.get(template_id)

    def create_template(
        self,
        *,
        template_id: str,
        name: str,
        subject: str,
        html_source: str,
        text_source: Optional[str] = None,
        variables: Optional[Dict[str, TemplateVariable]] = None,
    ) -> EmailTemplate:
        if template_id in self._templates:
            raise TemplateError(f"Template '{template_id}' already exists")
        for key, var_def in (variables or {}).items():
            if var_def.type not in VARIABLE_TYPES:
                raise TemplateError(f"Variable '{key}' has unknown type '{var_def.type}'")
        template = EmailTemplate(
            id=template_id,
            name=name,
            subject=subject,
            variables=dict(variables or {}),
            html_source=html_source,
            text_source=text_source,
        )
        self._templates[template_id] = template
        logger.info("email_template_created id=%s", template_id)
        return template

    def update_template(self, template_id: str, **changes: Any) -> EmailTemplate:
        template = self._require(template_id)
        allowed = {"name", "subject", "html_source", "text_source", "variables", "is_active"}
        unknown = set(changes) - allowed
        if unknown:
            raise TemplateError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        for key, value in changes.items():
            setattr(template, key, value)
        template.version += 1
        template.updated_at = datetime.now(UTC)
        logger.info("email_template_updated id=%s version=%s", template_id, template.version)
        return template

    def delete_template(self, template_id: str) -> bool:
        if template_id not in self._templates:
            return False
        del self._templates[template_id]
        logger.info("email_template_deleted id=%s", template_id)
        return True

    def deactivate_template(self, template_id: str) -> bool:
        template = self._templates.get(template_id)
        if template is None:
            return False
        template.is_active = False
        template.updated_at = datetime.now(UTC)
        return True

    # Rendering

    def validate(self, template: EmailTemplate, data: Dict[str, Any]) -> List[str]:
        errors: List[str] = []
        for key, var_def in template.variables.items():
            value = data.get(key)
            if value is None or value == "":
                if var_def.required:
                    errors.append(f"Required variable '{key}' is missing")
                continue
            if not _type_matches(var_def.type, value):
                errors.append(f"Variable '{key}' should be of type '{var_def.type}' but is '{type(value).__name__}'")
        return errors

    def render(self, template_id: str, data: Dict[str, Any]) -> RenderedEmail:
        template = self._require(template_id)
        if not template.is_active:
            raise TemplateError(f"Template '{template_id}' is inactive")
        errors = self.validate(template, data)
        if errors:
            raise TemplateValidationError(template_id, errors)

        subject = self.env.from_string(template.subject).render(**data).strip()
        if template.html_source is not None:
            html = self._html_env.from_string(template.html_source).render(**data)
            text = (
                self.env.from_string(template.text_source).render(**data)
                if template.text_source
                else html_to_text(html)
            )
        else:
            html = self.env.get_template(f"{template.id}.html").render(**data)
            try:
                text = self.env.get_template(f"{template.id}.txt").render(**data)
            except TemplateNotFound:
                text = html_to_text(html)
        logger.debug("email_template_rendered id=%s vars=%s", template_id, sorted(data))
        return RenderedEmail(subject=subject, html=html, text=text.strip() + "\n")

    def _require(self, template_id: str) -> EmailTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateError(f"Template '{template_id}' not found")
        return template


_template_engine: Optional[TemplateEngine] = None


def get_template_engine() -> TemplateEngine:
    """Get singleton template engine instance."""
    global _template_engine
    if _template_engine is None:
        _template_engine = TemplateEngine()
    return _template_engine

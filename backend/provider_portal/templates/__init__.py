"""
Email Templates Package

HTML email templates for provider notifications.
"""
from .email_templates import (
    get_email_template,
    get_base_template,
    get_info_card,
    humanize_field,
    EmailTemplateKey,
    TEMPLATE_REGISTRY
)

__all__ = [
    "get_email_template",
    "get_base_template",
    "get_info_card",
    "humanize_field",
    "EmailTemplateKey",
    "TEMPLATE_REGISTRY"
]

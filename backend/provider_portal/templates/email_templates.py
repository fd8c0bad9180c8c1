"""
Email Templates - HTML emails sent to providers

Only the completion-link email lives here today; delivery is handled by the
external mail collaborator reading the notification outbox.
"""
from html import escape
from typing import Any, Callable, Dict, List, Optional
from enum import Enum


class EmailTemplateKey(str, Enum):
    """All available email template types"""
    COMPLETION_LINK = "COMPLETION_LINK"


BRAND_NAME = "RUSH Healthcare"
BRAND_COLOR = "#1586D6"
SUPPORT_EMAIL = "support@rushhealthc.com"


def humanize_field(field: str) -> str:
    """license_number -> License Number"""
    return field.replace("_", " ").title()


# =============================================================================
# Base Template Wrapper
# =============================================================================

def get_base_template(
    content: str,
    action_button_text: Optional[str] = None,
    action_button_url: Optional[str] = None,
    footer_note: Optional[str] = None,
    accent_color: str = BRAND_COLOR
) -> str:
    """
    Base email layout shared by all provider emails
    
    Uses tables so it renders in Outlook as well as web clients.
    """
    button_html = ""
    if action_button_text and action_button_url:
        button_html = f'''
        <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="margin: 30px 0;">
            <tr>
                <td align="center">
                    <a href="{action_button_url}"
                       style="display: inline-block;
                              background-color: {accent_color};
                              color: #ffffff;
                              text-decoration: none;
                              padding: 12px 24px;
                              border-radius: 5px;
                              font-family: Arial, sans-serif;">
                        {action_button_text}
                    </a>
                </td>
            </tr>
        </table>
        <p style="font-family: Arial, sans-serif;">Or copy and paste this link into your browser:</p>
        <p style="word-break: break-all; background-color: #f5f5f5; padding: 10px; border-radius: 3px; font-family: Arial, sans-serif;">{action_button_url}</p>
        '''
    
    footer_note_html = ""
    if footer_note:
        footer_note_html = f'''
        <p style="font-size: 12px; color: #666; font-family: Arial, sans-serif;">{footer_note}</p>
        '''
    
    return f'''
<!DOCTYPE html>
<html>
<head>
    <meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{BRAND_NAME}</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" align="center" style="margin: 0 auto; max-width: 600px;">
        <tr>
            <td style="padding: 20px;">
                {content}
                {button_html}
                <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
                <p style="font-size: 12px; color: #666;">
                    This email was sent from {BRAND_NAME}<br>
                    If you have any questions, please contact us at {SUPPORT_EMAIL}
                </p>
                {footer_note_html}
            </td>
        </tr>
    </table>
</body>
</html>
'''


def get_info_card(title: str, items: List[str], title_color: str = "#dc3545") -> str:
    """Highlighted box with a bulleted list"""
    rows = "".join(f"<li>{escape(item)}</li>" for item in items)
    return f'''
    <div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">
        <h3 style="color: {title_color}; margin-top: 0;">{escape(title)}</h3>
        <ul style="margin-bottom: 0;">{rows}</ul>
    </div>
    '''


# =============================================================================
# Templates
# =============================================================================

def get_completion_link_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """
    Email asking a provider to supply missing application fields
    
    Payload keys: provider_name, missing_fields, completion_url, ttl_hours, sent_by
    """
    provider_name = escape(payload.get("provider_name") or "Provider")
    missing = [humanize_field(field) for field in payload.get("missing_fields", [])]
    ttl_hours = payload.get("ttl_hours", 72)
    
    content = f'''
    <h2 style="color: {BRAND_COLOR};">Complete Your Provider Application</h2>
    <p>Dear {provider_name},</p>
    <p>We have reviewed your provider application and noticed that some information is missing or incomplete. To proceed with your application, please complete the following:</p>
    {get_info_card("Missing Information:", missing)}
    <p>Please click the button below to complete your application:</p>
    '''
    
    notice = f'''
    <div style="background-color: #fff3cd; border: 1px solid #ffeaa7; padding: 15px; border-radius: 5px; margin: 20px 0;">
        <p style="margin: 0; color: #856404;"><strong>Important:</strong></p>
        <ul style="margin: 5px 0 0 0; color: #856404;">
            <li>This link will expire in {ttl_hours} hours</li>
            <li>You can only use this link once</li>
            <li>If you need assistance, please contact our support team</li>
        </ul>
    </div>
    '''
    
    return {
        "subject": f"Complete Your Provider Application - {BRAND_NAME}",
        "body": get_base_template(
            content=content,
            action_button_text="Complete Application",
            action_button_url=payload.get("completion_url", app_url),
            footer_note=notice + f"Request sent by: {escape(payload.get('sent_by', ''))}"
        )
    }


TEMPLATE_REGISTRY: Dict[EmailTemplateKey, Callable[[Dict[str, Any], str], Dict[str, str]]] = {
    EmailTemplateKey.COMPLETION_LINK: get_completion_link_template,
}


def get_email_template(
    template_key: str,
    payload: Dict[str, Any],
    app_url: str = ""
) -> Dict[str, str]:
    """
    Get rendered email template by key
    
    Args:
        template_key: Template identifier (from NotificationTemplateKey)
        payload: Data to populate the template
        app_url: Base URL for action buttons
        
    Returns:
        Dict with 'subject' and 'body' keys
        
    Raises:
        ValueError: unknown template key
    """
    key = EmailTemplateKey(template_key)
    return TEMPLATE_REGISTRY[key](payload, app_url)

# email_templates.py — Transactional email bodies
# Each template returns (subject, html_body, text_body). Inline CSS only.

from html import escape
from typing import Optional

GOLD = "#B8860B"
INK = "#1D1D1F"
MUTED = "#6E6E73"
PAPER = "#FAF8F3"

TIER_LABELS = {
    "emerging": "Emerging",
    "accomplished": "Accomplished",
    "distinguished": "Distinguished",
    "legacy": "Legacy",
}


def _base_layout(content: str, app_name: str = "Icons Herald") -> str:
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {PAPER}; font-family: Georgia, 'Times New Roman', serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px; font-size: 24px; color: {GOLD}; letter-spacing: 2px;">{app_name.upper()}</td>
                    </tr>
                    <tr>
                        <td style="background-color: #FFFFFF; border-top: 3px solid {GOLD}; padding: 40px 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px; color: {MUTED}; font-size: 12px;">
                            You received this email because of activity on {app_name}.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    return (
        f'<p style="margin: 28px 0; text-align: center;">'
        f'<a href="{escape(url, quote=True)}" style="background-color: {GOLD}; color: #FFFFFF; '
        f'padding: 14px 32px; text-decoration: none; border-radius: 4px;">{label}</a></p>'
    )


def _paragraph(text: str) -> str:
    return f'<p style="color: {INK}; font-size: 16px; line-height: 1.6; margin: 0 0 16px 0;">{text}</p>'


def invitation_email(name: str, email: str, tier: str, temp_password: Optional[str], login_url: str) -> tuple:
    """Sent when a nomination is approved. Existing accounts get no temporary credential."""
    tier_label = TIER_LABELS.get(tier, tier.title())
    subject = f"You have been selected for an Icons Herald {tier_label} profile"
    if temp_password:
        credential_html = (
            f"Sign in with <strong>{escape(email)}</strong> and the temporary password "
            f'<code style="background: {PAPER}; padding: 2px 6px;">{escape(temp_password)}</code>. '
            f"You will be asked to choose a new password after signing in."
        )
        credential_text = f"Email: {email}\nTemporary password: {temp_password}\n\nSign in at {login_url} and choose a new password.\n"
    else:
        credential_html = f"Sign in with your existing account <strong>{escape(email)}</strong> to get started."
        credential_text = f"Sign in at {login_url} with your existing account ({email}).\n"

    content = "".join([
        _paragraph(f"Dear {escape(name)},"),
        _paragraph(
            f"Congratulations! Your nomination has been reviewed and approved. "
            f"You have been invited to build your <strong>{tier_label}</strong> profile."
        ),
        _paragraph(credential_html),
        _button(login_url, "Start building your profile"),
    ])
    text = (
        f"Dear {name},\n\n"
        f"Congratulations! Your nomination has been approved and you have been invited "
        f"to build your {tier_label} profile on Icons Herald.\n\n"
        f"{credential_text}"
    )
    return subject, _base_layout(content), text


def nomination_received_email(nominator_name: str, nominee_name: str) -> tuple:
    subject = "We received your nomination"
    content = "".join([
        _paragraph(f"Dear {escape(nominator_name)},"),
        _paragraph(
            f"Thank you for nominating <strong>{escape(nominee_name)}</strong>. "
            f"Our editorial team reviews every nomination and will reach out to the nominee if it is approved."
        ),
    ])
    text = (
        f"Dear {nominator_name},\n\n"
        f"Thank you for nominating {nominee_name}. Our editorial team reviews every "
        f"nomination and will reach out to the nominee if it is approved.\n"
    )
    return subject, _base_layout(content), text


def profile_published_email(name: str, profile_url: str) -> tuple:
    subject = "Your Icons Herald profile is live"
    content = "".join([
        _paragraph(f"Dear {escape(name)},"),
        _paragraph("Your payment has been received and your profile is now published."),
        _button(profile_url, "View your profile"),
    ])
    text = (
        f"Dear {name},\n\n"
        f"Your payment has been received and your profile is now published:\n{profile_url}\n"
    )
    return subject, _base_layout(content), text

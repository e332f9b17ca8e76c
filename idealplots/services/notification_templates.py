# idealplots/services/notification_templates.py
from dataclasses import dataclass

AGENT_WELCOME_SUBJECT = "Welcome to Ideal Plots - Agent Account Created"

AGENT_WELCOME_EMAIL = (
    "Dear {name},\n\n"
    "An agent account has been created for you at Ideal Plots.\n\n"
    "Your login credentials:\n"
    "Email: {email}\n"
    "Temporary Password: {temp_credential}\n\n"
    "Please log in at [website_url] and:\n"
    "1. Change your password immediately\n"
    "2. Verify your email address\n"
    "3. Verify your phone number\n\n"
    "After verification, your account will be fully activated.\n\n"
    "Best regards,\n"
    "Ideal Plots Team"
)

AGENT_WELCOME_SMS = (
    "Welcome to Ideal Plots! Your agent account has been created. "
    "Login with email: {email} and temporary password: {temp_credential}. "
    "Please login immediately to change your password and verify your account."
)


@dataclass(frozen=True)
class RenderedNotification:
    email_subject: str
    email_body: str
    sms_message: str


def render_agent_welcome(name: str, email: str, temp_credential: str) -> RenderedNotification:
    fields = {"name": name, "email": email, "temp_credential": temp_credential}
    return RenderedNotification(
        email_subject=AGENT_WELCOME_SUBJECT,
        email_body=AGENT_WELCOME_EMAIL.format(**fields),
        sms_message=AGENT_WELCOME_SMS.format(**fields),
    )

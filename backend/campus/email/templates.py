# campus/email/templates.py
"""
Subject, HTML and plain-text bodies for the transactional emails.

Every ``render_*`` function returns a ``RenderedEmail``; the queue service
wraps it in an ``EmailJob`` with the right id, priority and metadata.
"""

from datetime import datetime
from html import escape
from typing import NamedTuple, Optional

from campus.core.config import settings


class RenderedEmail(NamedTuple):
    subject: str
    html: str
    text: str


def _layout(title: str, body: str, title_color: str = "#2c3e50") -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{escape(title)}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: {title_color};">{escape(title)}</h2>
{body}
        <p>Best regards,<br>The {escape(settings.APP_NAME)} Team</p>
    </div>
</body>
</html>
"""


def _button(url: str, label: str, color: str = "#3498db") -> str:
    return f"""
        <div style="text-align: center; margin: 30px 0;">
            <a href="{escape(url, quote=True)}"
               style="background-color: {color}; color: white; padding: 12px 30px;
                      text-decoration: none; border-radius: 5px; display: inline-block;">
                {escape(label)}
            </a>
        </div>
"""


def render_welcome(user_name: str) -> RenderedEmail:
    app_name = settings.APP_NAME
    html = _layout(
        f"Welcome to {app_name}!",
        f"""
        <p>Dear {escape(user_name)},</p>
        <p>Welcome to {escape(app_name)}. Your account has been successfully created.</p>
        <p>You can now log in and start using the system.</p>
""",
    )
    text = f"""
Welcome to {app_name}!

Dear {user_name},

Your account has been successfully created. You can now log in and start using the system.

Best regards,
The {app_name} Team
"""
    return RenderedEmail(f"Welcome to {app_name}", html, text)


def render_application_status(user_name: str, status: str, application_id: str) -> RenderedEmail:
    html = _layout(
        "Application Status Update",
        f"""
        <p>Dear {escape(user_name)},</p>
        <p>Your application (ID: {escape(application_id)}) status has been updated to:
           <strong>{escape(status)}</strong></p>
        <p>Please log in to your account for more details.</p>
""",
    )
    text = (
        f"Application Status Update: Your application {application_id} "
        f"status is now {status}"
    )
    return RenderedEmail(f"Application Status Update - {status}", html, text)


def render_exam_notification(user_name: str, exam_name: str, exam_date: datetime) -> RenderedEmail:
    day = exam_date.strftime("%d %b %Y")
    time_of_day = exam_date.strftime("%H:%M")
    html = _layout(
        "Exam Notification",
        f"""
        <p>Dear {escape(user_name)},</p>
        <p>This is a reminder that you have an upcoming exam:</p>
        <div style="background: #f5f5f5; padding: 15px; border-radius: 5px; margin: 15px 0;">
            <h3 style="margin: 0; color: #333;">{escape(exam_name)}</h3>
            <p style="margin: 5px 0;"><strong>Date:</strong> {day}</p>
            <p style="margin: 5px 0;"><strong>Time:</strong> {time_of_day}</p>
        </div>
        <p>Please be prepared and arrive on time.</p>
""",
    )
    text = f"Exam Notification: {exam_name} on {day} at {time_of_day}"
    return RenderedEmail(f"Exam Notification - {exam_name}", html, text)


def render_password_reset(reset_url: str) -> RenderedEmail:
    html = _layout(
        "Password Reset Request",
        f"""
        <p>You have requested to reset your password.</p>
        <p>Click the button below to reset your password:</p>
{_button(reset_url, "Reset Password", color="#e74c3c")}
        <p>Or copy and paste this link into your browser:</p>
        <p style="word-break: break-all; color: #7f8c8d;">{escape(reset_url)}</p>
        <p><small>This link will expire in 24 hours.</small></p>
        <p style="color: #7f8c8d; font-size: 12px;">
            If you didn't request this password reset, you can safely ignore this email.
        </p>
""",
        title_color="#e74c3c",
    )
    text = f"Password reset requested. Click this link to reset: {reset_url}"
    return RenderedEmail("Password Reset Request", html, text)


def render_application_submitted(user_name: str, application_id: str) -> RenderedEmail:
    html = _layout(
        "Application Submitted Successfully",
        f"""
        <p>Dear {escape(user_name)},</p>
        <p>We have received your application (ID: <strong>{escape(application_id)}</strong>).</p>
        <p>Our admissions team will review your documents and get back to you shortly.
           You can track the status from your dashboard.</p>
""",
    )
    text = (
        f"Dear {user_name}, your application {application_id} has been submitted "
        f"successfully. We will notify you when its status changes."
    )
    return RenderedEmail("Application Submitted Successfully", html, text)


def render_payment_verification(
    user_name: str,
    payment_id: str,
    status: str,
    amount: float,
    currency: str,
    notes: Optional[str] = None,
) -> RenderedEmail:
    verified = status == "VERIFIED"
    title = "Payment Verified Successfully" if verified else "Payment Verification Update"
    notes_html = f"<p><strong>Admin Notes:</strong> {escape(notes)}</p>" if notes else ""
    outcome = (
        "Great news! Your payment has been successfully verified and processed."
        if verified
        else "Unfortunately, there was an issue with your payment verification. "
             "Please check the admin notes for more details."
    )
    html = _layout(
        title,
        f"""
        <p>Dear {escape(user_name)},</p>
        <div style="background: #f5f5f5; padding: 15px; border-radius: 5px; margin: 15px 0;">
            <p style="margin: 5px 0;"><strong>Payment ID:</strong> {escape(payment_id)}</p>
            <p style="margin: 5px 0;"><strong>Amount:</strong> {amount:,.2f} {escape(currency)}</p>
            <p style="margin: 5px 0;"><strong>Status:</strong> {escape(status)}</p>
            {notes_html}
        </div>
        <p>{outcome}</p>
""",
        title_color="#27ae60" if verified else "#e67e22",
    )
    text = f"{title}: payment {payment_id} of {amount:,.2f} {currency} is {status}."
    if notes:
        text += f" Notes: {notes}"
    return RenderedEmail(title, html, text)


def render_placement_notification(
    user_name: str,
    title: str,
    company_name: str,
    position: str,
    description: str = "",
    package_offered: Optional[str] = None,
    location: Optional[str] = None,
    application_deadline: Optional[datetime] = None,
    cgpa_criteria: Optional[float] = None,
    user_cgpa: Optional[float] = None,
) -> RenderedEmail:
    details = [("Company", company_name), ("Position", position)]
    if package_offered:
        details.append(("Package", package_offered))
    if location:
        details.append(("Location", location))
    if application_deadline:
        details.append(("Application Deadline", application_deadline.strftime("%d %b %Y")))
    if cgpa_criteria:
        criteria = f"{cgpa_criteria}"
        if user_cgpa is not None:
            criteria += f" (Your CGPA: {user_cgpa})"
        details.append(("Minimum CGPA", criteria))

    rows = "\n".join(
        f'            <p style="margin: 5px 0;"><strong>{label}:</strong> {escape(str(value))}</p>'
        for label, value in details
    )
    html = _layout(
        "New Placement Opportunity",
        f"""
        <p>Dear {escape(user_name)},</p>
        <p>A new placement opportunity matching your profile has been posted:</p>
        <div style="background: #f5f5f5; padding: 15px; border-radius: 5px; margin: 15px 0;">
            <h3 style="margin: 0; color: #333;">{escape(title)}</h3>
{rows}
        </div>
        <p>{escape(description)}</p>
        <p>For any queries, please contact the placement office.</p>
""",
    )
    text_rows = "\n".join(f"{label}: {value}" for label, value in details)
    text = f"""
New Placement Opportunity: {title}

Dear {user_name},

{text_rows}

{description}

This is an automated notification from the placement office.
"""
    return RenderedEmail(
        f"New Placement Opportunity: {title} at {company_name}", html, text
    )

# campus/email/sender.py
import logging
import smtplib
from email.header import Header
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from campus.core.config import settings
from campus.email.schemas import EmailJob

# Configure logging
logger = logging.getLogger(__name__)


class SmtpEmailSender:
    """Deliver one ``EmailJob`` through an SMTP relay (MailHog in development)"""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: Optional[bool] = None,
    ):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = settings.SMTP_USER if user is None else user
        self.password = settings.SMTP_PASSWORD if password is None else password
        self.use_tls = settings.SMTP_TLS if use_tls is None else use_tls

    def build_message(self, job: EmailJob) -> MIMEMultipart:
        from_header = job.from_ or f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"

        msg = MIMEMultipart("mixed")
        msg["Subject"] = Header(job.subject, "utf-8")
        msg["From"] = from_header
        msg["To"] = ", ".join(job.recipients)
        msg["Message-ID"] = f"<{job.id}@{settings.EMAIL_FROM.split('@')[-1]}>"

        body = MIMEMultipart("alternative")
        if job.text:
            body.attach(MIMEText(job.text, "plain", "utf-8"))
        if job.html:
            body.attach(MIMEText(job.html, "html", "utf-8"))
        msg.attach(body)

        for attachment in job.attachments or []:
            content = attachment.content
            if isinstance(content, str):
                content = content.encode("utf-8")
            maintype, _, subtype = (attachment.content_type or "application/octet-stream").partition("/")
            part = MIMEBase(maintype, subtype or "octet-stream")
            part.set_payload(content)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)

        return msg

    def send(self, job: EmailJob) -> str:
        """
        Send the job synchronously.

        Returns:
            str: the Message-ID header of the sent message

        Raises:
            smtplib.SMTPException / OSError: delivery failed
        """
        msg = self.build_message(job)
        envelope_from = settings.EMAIL_FROM

        logger.info(f"Sending email {job.id} to {msg['To']} with subject '{job.subject}'")

        smtp_server = smtplib.SMTP(host=self.host, port=self.port, timeout=settings.SMTP_TIMEOUT)
        try:
            if self.use_tls:
                smtp_server.starttls()

            if self.user and self.password:
                smtp_server.login(self.user, self.password)

            smtp_server.sendmail(envelope_from, job.recipients, msg.as_string())
        finally:
            smtp_server.quit()

        logger.info(f"Email {job.id} successfully sent")
        return msg["Message-ID"]

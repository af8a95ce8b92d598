"""
Outbound email for Greenlight.

Each template file defines three jinja2 blocks: subject, plainBody and
htmlBody. Messages are sent as multipart/alternative with the plain body
first and the HTML body as the alternative.

Send is blocking and slow; it is only ever called through TaskSupervisor.run,
never on the request path.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"


class Mailer:
    """SMTP sender with jinja2 templates.

    Example:
        >>> mailer = Mailer("smtp.example.com", 587, "user", "pass", "Greenlight <no-reply@example.com>")
        >>> mailer.send("alice@example.com", "user_welcome.tmpl", {"userId": 1, "activationToken": "..."})
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        sender: str,
        timeout: float = 5.0,
        templates_dir: Path = TEMPLATES_DIR,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=False,
            undefined=StrictUndefined,
        )

    def render(self, template_file: str, data: dict[str, Any]) -> tuple[str, str, str]:
        """Render the subject, plainBody and htmlBody blocks of a template.

        Returns:
            Tuple of (subject, plain body, HTML body)
        """
        tmpl = self.env.get_template(template_file)
        ctx = tmpl.new_context(data)

        subject = "".join(tmpl.blocks["subject"](ctx)).strip()
        plain_body = "".join(tmpl.blocks["plainBody"](ctx))
        html_body = "".join(tmpl.blocks["htmlBody"](ctx))

        return subject, plain_body, html_body

    def build_message(self, recipient: str, template_file: str, data: dict[str, Any]) -> EmailMessage:
        subject, plain_body, html_body = self.render(template_file, data)

        msg = EmailMessage()
        msg["To"] = recipient
        msg["From"] = self.sender
        msg["Subject"] = subject
        msg.set_content(plain_body)
        msg.add_alternative(html_body, subtype="html")
        return msg

    def send(self, recipient: str, template_file: str, data: dict[str, Any]) -> None:
        """Render template_file with data and deliver it to recipient.

        Raises:
            jinja2.TemplateError: If the template is missing or broken
            smtplib.SMTPException / OSError: If delivery failed
        """
        msg = self.build_message(recipient, template_file, data)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.username and self.password:
                smtp.starttls()
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

        logger.info("Sent email", extra={"template": template_file})

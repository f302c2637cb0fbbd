"""Share notifications: emails a founder the SAFE an investor started for them"""
import os
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import boto3

from services.models import InvestmentWithRelations, RenderedDocument
from utils.logger import log_error, log_info


def build_share_greeting(investment: InvestmentWithRelations) -> str:
    """Short HTML greeting using the founder's first name and the fund's name"""
    first_name = investment.founder.first_name if investment.founder else ''
    fund_name = investment.fund.name if investment.fund and investment.fund.name else 'An investor'
    return (
        f"<p>Hi {first_name},</p>\n"
        f"<p>{fund_name} has shared a SAFE agreement with you. "
        f"Please find the document attached to this email.</p>"
    )


def build_share_subject(investment: InvestmentWithRelations) -> str:
    fund_name = investment.fund.name if investment.fund and investment.fund.name else 'An investor'
    return f"{fund_name} has shared a SAFE agreement with you"


class NotificationService:
    """Send share emails through AWS SES"""

    def __init__(self, ses_client=None):
        aws_access_key = os.environ.get('AWS_ACCESS_KEY_ID')
        aws_secret_key = os.environ.get('AWS_SECRET_ACCESS_KEY')
        aws_region = os.environ.get('AWS_REGION', 'us-east-1')
        self.from_email = os.environ.get('SES_FROM_EMAIL', 'noreply@yourapp.com')
        self.from_name = os.environ.get('SES_FROM_NAME', 'SAFE Generator')
        self.enabled = os.environ.get('EMAIL_ENABLED', 'false').lower() == 'true'

        if ses_client is not None:
            self.ses_client = ses_client
        elif aws_access_key and aws_secret_key:
            self.ses_client = boto3.client(
                'ses',
                region_name=aws_region,
                aws_access_key_id=aws_access_key,
                aws_secret_access_key=aws_secret_key
            )
        else:
            # Fallback to IAM role/default credentials
            self.ses_client = boto3.client('ses', region_name=aws_region)

    def _build_message(
        self,
        to_email: str,
        subject: str,
        body: str,
        attachment: Optional[RenderedDocument] = None
    ) -> MIMEMultipart:
        message = MIMEMultipart('mixed')
        message['Subject'] = subject
        message['From'] = f"{self.from_name} <{self.from_email}>"
        message['To'] = to_email
        message.attach(MIMEText(body, 'html'))

        if attachment is not None:
            part = MIMEApplication(attachment.content, _subtype=RenderedDocument.MIMETYPE.split('/', 1)[1])
            part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
            message.attach(part)
        return message

    def send_share_email(
        self,
        investment: InvestmentWithRelations,
        to_email: str,
        attachment: Optional[RenderedDocument] = None
    ) -> bool:
        """
        Email the founder that a SAFE was shared with them.

        Returns False without sending when EMAIL_ENABLED is not 'true'.
        """
        if not self.enabled:
            log_info(f"Email disabled; share email to {to_email} not sent", component='notifications')
            return False

        message = self._build_message(
            to_email,
            build_share_subject(investment),
            build_share_greeting(investment),
            attachment
        )
        try:
            self.ses_client.send_raw_email(
                Source=self.from_email,
                Destinations=[to_email],
                RawMessage={'Data': message.as_string()}
            )
        except Exception as e:
            log_error(f"Failed to send share email to {to_email}", e, component='notifications')
            raise
        log_info(f"Share email sent to {to_email} for investment {investment.investment.id}", component='notifications')
        return True

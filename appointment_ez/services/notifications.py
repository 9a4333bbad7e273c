import logging
import smtplib
import ssl
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

from appointment_ez.core.exceptions import TimestampParseError
from appointment_ez.models.booking import DEFAULT_LANGUAGE, Booking
from appointment_ez.scheduling.timestamps import (
    parse_stored_instant,
    render_clock_time,
    render_long_date,
)
from appointment_ez.storage.settings_store import SettingsStore

logger = logging.getLogger(__name__)

SENDER_NAMES = {'zh': '预约系统', 'en': 'Appointment System'}

CONFIRMATION_TEMPLATES = {
    'zh': {
        'subject': '预约确认',
        'body': (
            '<h2>预约确认</h2>'
            '<p>尊敬的 {name},</p>'
            '<p>您的预约已经确认：</p>'
            '<p><strong>日期：</strong> {date}</p>'
            '<p><strong>时间：</strong> {time} (美国东部时间/纽约时间)</p>'
            '<p><strong>主题：</strong> {topic}</p>'
            '<p>我们将在预约时间通过微信联系您 (ID: {wechat_id}).</p>'
            '<p>如果您想取消预约，请点击下面的链接：</p>'
            '<p><a href="{cancel_url}">取消预约</a></p>'
            '<p>您可以通过访问我们的<a href="{base_url}">预约页面</a>预约更多时间。</p>'
            '<p>谢谢！</p>'
        ),
    },
    'en': {
        'subject': 'Appointment Confirmation',
        'body': (
            '<h2>Appointment Confirmation</h2>'
            '<p>Dear {name},</p>'
            '<p>Your appointment has been confirmed:</p>'
            '<p><strong>Date:</strong> {date}</p>'
            '<p><strong>Time:</strong> {time} (Eastern Time/New York Time)</p>'
            '<p><strong>Topic:</strong> {topic}</p>'
            '<p>We will contact you on WeChat (ID: {wechat_id}) at the appointment time.</p>'
            '<p>If you need to cancel, please use the link below:</p>'
            '<p><a href="{cancel_url}">Cancel appointment</a></p>'
            '<p>You can book more times on our <a href="{base_url}">booking page</a>.</p>'
            '<p>Thank you!</p>'
        ),
    },
}

CANCELLATION_TEMPLATES = {
    'zh': {
        'subject': '预约取消确认',
        'body': (
            '<h2>预约取消确认</h2>'
            '<p>尊敬的 {name},</p>'
            '<p>您的以下预约已被取消：</p>'
            '<p><strong>日期：</strong> {date}</p>'
            '<p><strong>时间：</strong> {time} (美国东部时间/纽约时间)</p>'
            '<p><strong>主题：</strong> {topic}</p>'
            '<p><strong>取消原因：</strong> {reason}</p>'
            '<p>您可以通过访问我们的<a href="{base_url}">预约页面</a>预约新的时间。</p>'
            '<p>谢谢！</p>'
        ),
        'no_reason': '未提供原因',
    },
    'en': {
        'subject': 'Appointment Cancellation Confirmation',
        'body': (
            '<h2>Appointment Cancellation Confirmation</h2>'
            '<p>Dear {name},</p>'
            '<p>Your appointment has been cancelled:</p>'
            '<p><strong>Date:</strong> {date}</p>'
            '<p><strong>Time:</strong> {time} (Eastern Time/New York Time)</p>'
            '<p><strong>Topic:</strong> {topic}</p>'
            '<p><strong>Reason for cancellation:</strong> {reason}</p>'
            '<p>You can book a new appointment by visiting our <a href="{base_url}">booking page</a>.</p>'
            '<p>Thank you!</p>'
        ),
        'no_reason': 'No reason provided',
    },
}


def _language_of(booking: Booking, override: str | None = None) -> str:
    language = override or booking.language or DEFAULT_LANGUAGE
    return language if language in CONFIRMATION_TEMPLATES else DEFAULT_LANGUAGE


class EmailNotifier:
    """Sends booking confirmation and cancellation mails over SMTP with STARTTLS."""

    def __init__(
        self,
        settings_store: SettingsStore,
        business_time_zone: str,
        base_url: str,
        username: str = '',
        password: str = '',
        host: str = 'smtp.gmail.com',
        port: int = 587,
    ) -> None:
        self._settings_store = settings_store
        self._business_time_zone = business_time_zone
        self._business_tz = ZoneInfo(business_time_zone)
        self._base_url = base_url.rstrip('/')
        self._username = username
        self._password = password
        self._host = host
        self._port = port

    @property
    def is_configured(self) -> bool:
        return bool(self._username and self._password)

    def cancel_url(self, booking: Booking) -> str:
        query = urlencode({
            'datetime': booking.appointment_time,
            'email': booking.email,
            'name': booking.name,
            'wechatId': booking.wechat_id,
            'topic': booking.topic,
            'lang': _language_of(booking),
        })
        return f'{self._base_url}/cancel?{query}'

    def _display_fields(self, booking: Booking) -> dict[str, str]:
        fields = {
            'name': escape(booking.name),
            'topic': escape(booking.topic),
            'wechat_id': escape(booking.wechat_id),
            'base_url': self._base_url,
        }
        try:
            instant = parse_stored_instant(booking.appointment_time, self._business_tz)
        except TimestampParseError:
            logger.warning('Booking %s has unparseable appointment time %r', booking.id, booking.appointment_time)
            fields.update(date=escape(booking.appointment_time), time='')
        else:
            fields.update(
                date=render_long_date(instant, self._business_time_zone),
                time=render_clock_time(instant, self._business_time_zone),
            )
        return fields

    def build_confirmation(self, booking: Booking) -> MIMEMultipart:
        language = _language_of(booking)
        template = CONFIRMATION_TEMPLATES[language]
        fields = self._display_fields(booking)
        fields['cancel_url'] = escape(self.cancel_url(booking))
        return self._build_message(booking, language, template['subject'], template['body'].format(**fields))

    def build_cancellation(self, booking: Booking, reason: str | None = None, language: str | None = None) -> MIMEMultipart:
        language = _language_of(booking, language)
        template = CANCELLATION_TEMPLATES[language]
        fields = self._display_fields(booking)
        fields['reason'] = escape(reason) if reason else template['no_reason']
        return self._build_message(booking, language, template['subject'], template['body'].format(**fields))

    def send_confirmation(self, booking: Booking) -> bool:
        if not self.is_configured:
            logger.info('Email credentials not configured; skipping confirmation for %s', booking.id)
            return False
        return self._send(booking, self.build_confirmation(booking))

    def send_cancellation(self, booking: Booking, reason: str | None = None, language: str | None = None) -> bool:
        if not self.is_configured:
            logger.info('Email credentials not configured; skipping cancellation for %s', booking.id)
            return False
        return self._send(booking, self.build_cancellation(booking, reason, language))

    def _build_message(self, booking: Booking, language: str, subject: str, html: str) -> MIMEMultipart:
        message = MIMEMultipart('alternative')
        message['Subject'] = Header(subject, 'utf-8')
        message['From'] = formataddr((SENDER_NAMES[language], self._username))
        message['To'] = booking.email
        message.attach(MIMEText(html, 'html', 'utf-8'))
        return message

    def _send(self, booking: Booking, message: MIMEMultipart) -> bool:
        recipients = [booking.email, *self._settings_store.bcc_emails()]
        try:
            with smtplib.SMTP(self._host, self._port, timeout=30) as server:
                server.starttls(context=ssl.create_default_context())
                server.login(self._username, self._password)
                server.sendmail(self._username, recipients, message.as_string())
        except (smtplib.SMTPException, OSError):
            logger.exception('Failed to send "%s" for booking %s', str(message['Subject']), booking.id)
            return False

        logger.info('Sent "%s" for booking %s', str(message['Subject']), booking.id)
        return True

"""Site settings document edited from the admin dashboard."""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

DEFAULT_BCC_EMAILS: list[str] = []


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class AttorneyName(_CamelModel):
    en: str = 'Attorney Ye Le'
    zh: str = '叶乐律师'


class TitleStyle(_CamelModel):
    font_family: str = 'Inter, sans-serif'
    font_size: str = '2rem'
    color: str = '#1976d2'


class Background(_CamelModel):
    type: str = 'color'
    value: str = '#f5f5f5'


class EmailSettings(_CamelModel):
    bcc_emails: list[str] = Field(default_factory=lambda: list(DEFAULT_BCC_EMAILS))
    admin_email: str = ''


class SystemSettings(_CamelModel):
    attorney_name: AttorneyName = Field(default_factory=AttorneyName)
    title_style: TitleStyle = Field(default_factory=TitleStyle)
    background: Background = Field(default_factory=Background)
    email_settings: EmailSettings = Field(default_factory=EmailSettings)

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

GROUPS = ('contact', 'messaging', 'social', 'other')
GROUP_TITLES = {
    'contact': 'Contact',
    'messaging': 'Messaging',
    'social': 'Social',
    'other': 'Other',
}
PRIORITIES = (1, 2, 3)
DISPLAY_URL_LIMIT = 40


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Contact:
    id: str
    group: str
    label: str
    value: str
    href: str
    icon: str = ''
    priority: int = 2
    copy_value: str = None
    note: str = ''

    @property
    def copy_text(self):
        return self.copy_value or self.value

    def matches(self, query):
        query = query.strip().lower()
        if not query:
            return True
        return any(query in text.lower()
                   for text in (self.label, self.value, self.note, self.group))


@dataclass(frozen=True)
class Config:
    name: str
    tagline: str = ''
    accent_light: str = '#0066cc'
    accent_dark: str = '#66b3ff'
    show_search: bool = True
    show_qr_code: bool = True
    collapse_low_priority: bool = True
    qr_foreground: str = '#000000'
    qr_background: str = '#ffffff'
    contacts: tuple = field(default_factory=tuple)


def _contact(raw):
    missing = [key for key in ('id', 'group', 'label', 'value', 'href')
               if not raw.get(key)]
    if missing:
        raise ConfigError('contact {!r} is missing {}'.format(
            raw.get('id', '?'), ', '.join(missing)))
    if raw['group'] not in GROUPS:
        raise ConfigError('contact {!r} has unknown group {!r}'.format(
            raw['id'], raw['group']))
    priority = raw.get('priority', 2)
    if priority not in PRIORITIES:
        raise ConfigError('contact {!r} has priority {!r}, expected 1, 2 or 3'.format(
            raw['id'], priority))
    return Contact(
        id=raw['id'],
        group=raw['group'],
        label=raw['label'],
        value=raw['value'],
        href=raw['href'],
        icon=raw.get('icon', ''),
        priority=priority,
        copy_value=raw.get('copyValue'),
        note=raw.get('note', ''),
    )


def parse_config(raw):
    if not raw.get('name'):
        raise ConfigError('config needs a name')
    contacts = tuple(_contact(item) for item in raw.get('contacts', ()))
    ids = [c.id for c in contacts]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigError('duplicate contact ids: {}'.format(', '.join(duplicates)))
    accent = raw.get('accentColor', {})
    features = raw.get('features', {})
    qr = raw.get('qr', {})
    return Config(
        name=raw['name'],
        tagline=raw.get('tagline', ''),
        accent_light=accent.get('light', Config.accent_light),
        accent_dark=accent.get('dark', Config.accent_dark),
        show_search=features.get('showSearch', True),
        show_qr_code=features.get('showQrCode', True),
        collapse_low_priority=features.get('collapseLowPriority', True),
        qr_foreground=qr.get('foreground', Config.qr_foreground),
        qr_background=qr.get('background', Config.qr_background),
        contacts=contacts,
    )


def load_config(path):
    path = Path(path)
    try:
        with open(path, encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError('cannot read {}: {}'.format(path, e)) from e
    config = parse_config(raw)
    logger.info('loaded %d contacts from %s', len(config.contacts), path)
    return config


def group_contacts(contacts, query='', collapse=True):
    """Group contacts for display.

    Returns ``(group, title, shown, collapsed)`` tuples in GROUPS order,
    each list sorted by priority. Priority 3 contacts go to ``collapsed``
    when ``collapse`` is set and no search is active; empty groups are
    dropped.
    """
    searching = bool(query.strip())
    groups = []
    for group in GROUPS:
        members = sorted((c for c in contacts if c.group == group and c.matches(query)),
                         key=lambda c: c.priority)
        if not members:
            continue
        if collapse and not searching:
            shown = [c for c in members if c.priority <= 2]
            collapsed = [c for c in members if c.priority > 2]
        else:
            shown, collapsed = members, []
        groups.append((group, GROUP_TITLES[group], shown, collapsed))
    return groups


def display_url(url):
    for prefix in ('https://', 'http://'):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break
    if url.endswith('/'):
        url = url[:-1]
    if len(url) > DISPLAY_URL_LIMIT:
        url = url[:DISPLAY_URL_LIMIT - 3] + '...'
    return url

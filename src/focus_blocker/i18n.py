"""
Internationalization (i18n) module for the focus blocker engine.

Provides translations for all user-facing messages in German (de) and English (en).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "de"


# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Lock transition notifications
    "notify.strict_mode_enabled": {
        "de": "Strikter Modus aktiviert für Sitzung {session_id}",
        "en": "Strict mode enabled for session {session_id}",
    },
    "notify.strict_mode_disableable": {
        "de": "Sitzung {session_id} beendet, strikter Modus kann deaktiviert werden",
        "en": "Session {session_id} ended, strict mode can be disabled",
    },
    "notify.strict_mode_disabled": {
        "de": "Strikter Modus deaktiviert",
        "en": "Strict mode disabled",
    },
    "notify.nuclear_activated": {
        "de": "Nuklear-Sperre für {duration_minutes} Minuten aktiviert (bis {ends_at})",
        "en": "Nuclear lock activated for {duration_minutes} minutes (until {ends_at})",
    },
    "notify.nuclear_expired": {
        "de": "Nuklear-Sperre abgelaufen",
        "en": "Nuclear lock expired",
    },

    # Permission status
    "status.fully_functional": {
        "de": "Voll funktionsfähig",
        "en": "Fully functional",
    },
    "status.degraded": {
        "de": "Eingeschränkt",
        "en": "Degraded",
    },
    "status.non_functional": {
        "de": "Nicht funktionsfähig",
        "en": "Non-functional",
    },

    # Rules
    "cli.rules.none": {
        "de": "Keine Regeln vorhanden",
        "en": "No rules defined",
    },
    "cli.rules.created": {
        "de": "Regel {rule_id} für '{target}' erstellt",
        "en": "Rule {rule_id} for '{target}' created",
    },
    "cli.rules.removed": {
        "de": "Regel {rule_id} entfernt",
        "en": "Rule {rule_id} removed",
    },
    "cli.rules.enabled": {
        "de": "Regel {rule_id} aktiviert",
        "en": "Rule {rule_id} enabled",
    },
    "cli.rules.disabled": {
        "de": "Regel {rule_id} deaktiviert",
        "en": "Rule {rule_id} disabled",
    },
    "cli.rules.strictness_changed": {
        "de": "Strenge von Regel {rule_id} auf '{strictness}' gesetzt",
        "en": "Strictness of rule {rule_id} set to '{strictness}'",
    },

    # Check
    "cli.check.blocked": {
        "de": "'{target}' ist derzeit gesperrt",
        "en": "'{target}' is currently blocked",
    },
    "cli.check.allowed": {
        "de": "'{target}' ist derzeit erlaubt",
        "en": "'{target}' is currently allowed",
    },

    # Strict mode
    "cli.strict.enabled": {
        "de": "Strikter Modus aktiviert für Sitzung {session_id}",
        "en": "Strict mode enabled for session {session_id}",
    },
    "cli.strict.disabled": {
        "de": "Strikter Modus deaktiviert",
        "en": "Strict mode disabled",
    },
    "cli.strict.session_ended": {
        "de": "Sitzungsende für {session_id} gemeldet",
        "en": "Session end reported for {session_id}",
    },
    "cli.strict.status_on": {
        "de": "Strikter Modus aktiv (Sitzung {session_id}, deaktivierbar: {can_disable})",
        "en": "Strict mode active (session {session_id}, can disable: {can_disable})",
    },
    "cli.strict.status_off": {
        "de": "Strikter Modus inaktiv",
        "en": "Strict mode inactive",
    },

    # Nuclear option
    "cli.nuclear.activated": {
        "de": "Nuklear-Sperre aktiv bis {ends_at}",
        "en": "Nuclear lock active until {ends_at}",
    },
    "cli.nuclear.status_on": {
        "de": "Nuklear-Sperre aktiv, noch {remaining_seconds} Sekunden (bis {ends_at})",
        "en": "Nuclear lock active, {remaining_seconds} seconds remaining (until {ends_at})",
    },
    "cli.nuclear.status_off": {
        "de": "Nuklear-Sperre inaktiv",
        "en": "Nuclear lock inactive",
    },

    # Permissions
    "cli.permissions.header": {
        "de": "Berechtigungen auf {platform}: {status}",
        "en": "Permissions on {platform}: {status}",
    },
    "cli.permissions.hosts": {
        "de": "Hosts-Datei ({path}) beschreibbar: {value}",
        "en": "Hosts file ({path}) writable: {value}",
    },
    "cli.permissions.monitoring": {
        "de": "Prozessüberwachung verfügbar: {value}",
        "en": "Process monitoring available: {value}",
    },
    "cli.permissions.termination": {
        "de": "Prozessbeendigung verfügbar: {value}",
        "en": "Process termination available: {value}",
    },
    "cli.permissions.recommendations": {
        "de": "Empfehlungen:",
        "en": "Recommendations:",
    },
    "cli.permissions.primary": {
        "de": "Empfohlene Methode: {name}",
        "en": "Recommended method: {name}",
    },
    "cli.permissions.alternative": {
        "de": "Alternative: {name}",
        "en": "Alternative: {name}",
    },

    # Statistics
    "cli.stats.summary": {
        "de": "Sperrversuche gesamt: {total} (heute: {today}, Woche: {week}, Monat: {month})",
        "en": "Total block attempts: {total} (today: {today}, week: {week}, month: {month})",
    },
    "cli.stats.top_target": {
        "de": "  {target} ({rule_type}): {count}",
        "en": "  {target} ({rule_type}): {count}",
    },
    "cli.stats.rule": {
        "de": "Regel {rule_id}: {total} Sperren, {bypasses} Umgehungen, {avg:.2f} pro Tag",
        "en": "Rule {rule_id}: {total} blocks, {bypasses} bypasses, {avg:.2f} per day",
    },

    # Configuration
    "cli.config.created": {
        "de": "Konfigurationsdatei erstellt: {path}",
        "en": "Configuration file created: {path}",
    },
    "cli.config.exists": {
        "de": "Konfigurationsdatei existiert bereits: {path}",
        "en": "Configuration file already exists: {path}",
    },
    "cli.config.not_found": {
        "de": "Konfigurationsdatei nicht gefunden: {path}",
        "en": "Configuration file not found: {path}",
    },
    "cli.config.valid": {
        "de": "Konfiguration ist gültig",
        "en": "Configuration is valid",
    },
    "cli.config.invalid": {
        "de": "Konfiguration ist ungültig",
        "en": "Configuration is invalid",
    },

    # Daemon
    "cli.run.started": {
        "de": "Sperr-Engine läuft, Abbruch mit Strg+C",
        "en": "Blocking engine running, press Ctrl+C to stop",
    },
    "cli.run.stopped": {
        "de": "Sperr-Engine beendet",
        "en": "Blocking engine stopped",
    },

    # Errors
    "cli.error": {
        "de": "Fehler: {message}",
        "en": "Error: {message}",
    },
    "cli.error.tampered": {
        "de": "Signierte Datei wurde manipuliert, Vorgang verweigert: {path}",
        "en": "Signed file has been tampered with, refusing to continue: {path}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'cli.rules.none')
        language: Language code ('de' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('cli.strict.disabled', 'en')
        'Strict mode disabled'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language) or translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except (KeyError, ValueError):
            # Missing or mistyped argument: keep the template
            pass

    return message


def get_all_message_keys() -> set[str]:
    return set(TRANSLATIONS.keys())


def has_translation(key: str, language: str) -> bool:
    translations = TRANSLATIONS.get(key)
    if translations is None:
        return False
    return language in translations


def get_missing_translations(language: str) -> set[str]:
    """Message keys that have no translation for a language."""
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }

"""WhatsApp reply templates.

Templates carry static text with placeholders for non-PII params only. They
are rendered once at startup into NotificationTexts (see infra.settings).
"""

from typing import Any

TEMPLATES: dict[str, dict[str, Any]] = {
    "service_unavailable": {
        "text": (
            "⚠️ *Serviço Indisponível*\n\n"
            "Tente novamente em alguns instantes ou entre em contato: {contact}"
        ),
        "allowed_params": ["contact"],
    },
    "access_denied": {
        "text": (
            "❎ *Acesso Negado*\n\n"
            "Este recurso requer autorização prévia para ser acessado.\n\n"
            "Entre em contato: {contact}"
        ),
        "allowed_params": ["contact"],
    },
    "access_granted": {
        "text": "✅ *Acesso Concedido*",
        "allowed_params": [],
    },
}


def render(template_key: str, params: dict[str, Any]) -> str:
    """Render template with params. Validates allowed_params.

    Args:
        template_key: Template identifier.
        params: Parameters to interpolate (must be in allowed_params).

    Returns:
        Rendered text string.

    Raises:
        ValueError: If template_key unknown or params contains disallowed keys.
    """
    if template_key not in TEMPLATES:
        raise ValueError(f"Unknown template: {template_key}")

    template = TEMPLATES[template_key]
    allowed = set(template["allowed_params"])
    extras = set(params.keys()) - allowed
    if extras:
        raise ValueError(f"Disallowed params for {template_key}: {extras}")

    return template["text"].format(**params)

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import Field as PydanticField

from console.domain.errors import ValidationError
from console.domain.models import OrdsAuthType, TenantDetail

REQUIRED = "Requerido"
REQUIRED_ON_CREATE = "Requerido al crear"
EMPTY_SECRET = "Vacío no permitido: omitir el campo conserva el valor guardado"

# Write-only credentials. None keeps the stored value, a non-empty string replaces it.
SECRET_FIELDS: tuple[str, ...] = ("clave_marangatu", "ords_password", "ords_token")
EXTRA_SECRET_FIELDS: tuple[str, ...] = ("smtp_password", "solvecaptcha_api_key")


class TenantConfigForm(BaseModel):
    ruc_login: str = ""
    usuario_marangatu: str = ""
    clave_marangatu: str | None = None
    marangatu_base_url: str = ""
    ords_base_url: str = ""
    ords_endpoint_facturas: str = ""
    ords_tipo_autenticacion: OrdsAuthType = OrdsAuthType.NONE
    ords_usuario: str = ""
    ords_password: str | None = None
    ords_token: str | None = None
    enviar_a_ords_automaticamente: bool = False
    frecuencia_sincronizacion_minutos: int = 60
    extra_config: dict[str, Any] = PydanticField(default_factory=dict)


class TenantForm(BaseModel):
    nombre_fantasia: str = ""
    ruc: str = ""
    email_contacto: str = ""
    config: TenantConfigForm = PydanticField(default_factory=TenantConfigForm)

    @classmethod
    def from_detail(cls, detail: TenantDetail) -> TenantForm:
        config = TenantConfigForm()
        if detail.config is not None:
            extra = {
                key: value
                for key, value in detail.config.extra_config.items()
                if key not in EXTRA_SECRET_FIELDS and not key.endswith("_set")
            }
            config = TenantConfigForm(
                ruc_login=detail.config.ruc_login,
                usuario_marangatu=detail.config.usuario_marangatu,
                marangatu_base_url=detail.config.marangatu_base_url or "",
                ords_base_url=detail.config.ords_base_url or "",
                ords_endpoint_facturas=detail.config.ords_endpoint_facturas or "",
                ords_tipo_autenticacion=detail.config.ords_tipo_autenticacion,
                ords_usuario=detail.config.ords_usuario or "",
                enviar_a_ords_automaticamente=detail.config.enviar_a_ords_automaticamente,
                frecuencia_sincronizacion_minutos=detail.config.frecuencia_sincronizacion_minutos,
                extra_config=extra,
            )
        return cls(
            nombre_fantasia=detail.nombre_fantasia,
            ruc=detail.ruc,
            email_contacto=detail.email_contacto or "",
            config=config,
        )


def collect_form_errors(form: TenantForm, *, creating: bool) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not form.nombre_fantasia.strip():
        errors["nombre_fantasia"] = REQUIRED
    if not form.ruc.strip():
        errors["ruc"] = REQUIRED
    if not form.config.ruc_login.strip():
        errors["ruc_login"] = REQUIRED
    if not form.config.usuario_marangatu.strip():
        errors["usuario_marangatu"] = REQUIRED
    if creating and not (form.config.clave_marangatu or "").strip():
        errors["clave_marangatu"] = REQUIRED_ON_CREATE
    for name in SECRET_FIELDS:
        value = getattr(form.config, name)
        if name in errors or value is None:
            continue
        if not value.strip():
            errors[name] = EMPTY_SECRET
    for name in EXTRA_SECRET_FIELDS:
        value = form.config.extra_config.get(name)
        if isinstance(value, str) and not value.strip():
            errors[name] = EMPTY_SECRET
    return errors


def validate_tenant_form(form: TenantForm, *, creating: bool) -> None:
    errors = collect_form_errors(form, creating=creating)
    if errors:
        field, reason = next(iter(errors.items()))
        raise ValidationError(field, reason)


def build_tenant_payload(form: TenantForm) -> dict[str, Any]:
    payload = form.model_dump(mode="json")
    config = payload["config"]
    for name in SECRET_FIELDS:
        if config.get(name) is None:
            config.pop(name, None)
    extra = config["extra_config"]
    for name in EXTRA_SECRET_FIELDS:
        if extra.get(name) is None:
            extra.pop(name, None)
    if not payload["email_contacto"]:
        payload["email_contacto"] = None
    return payload

from __future__ import annotations

from urllib.parse import urlencode
import html

from ..stores.records import UserRecord
from .mail_service import MailPayload


def _esc(value: str | None) -> str:
    return html.escape(value or "-")


def reset_password_link(app_base_url: str, token: str) -> str:
    base = app_base_url.rstrip("/")
    return f"{base}/reset-password?{urlencode({'token': token})}"


def _render_plain(*, name: str, link_url: str, ttl_min: int) -> str:
    lines: list[str] = []
    lines.append("TICKET DESK | Password reset")
    lines.append("")
    lines.append(f"Hello {name},")
    lines.append("")
    lines.append("We received a request to reset the password of your account.")
    lines.append(f"Open the link below within {ttl_min} minutes to choose a new password:")
    lines.append(link_url)
    lines.append("")
    lines.append("If you did not ask for this, you can ignore this message.")
    lines.append("This mailbox is not monitored.")
    return "\n".join(lines)


def _render_html(*, name: str, link_url: str, ttl_min: int) -> str:
    return f"""
<!DOCTYPE html>
<html lang=\"en\">
  <body style=\"margin:0;padding:24px;background:#ffffff;\">
    <table role=\"presentation\" width=\"100%\" cellspacing=\"0\" cellpadding=\"0\">
      <tr>
        <td align=\"center\">
          <table role=\"presentation\" width=\"560\" cellspacing=\"0\" cellpadding=\"0\" style=\"width:560px;border:1px solid #e5e7eb;border-radius:14px;\">
            <tr>
              <td style=\"padding:20px 24px;border-bottom:1px solid #e5e7eb;\">
                <div style=\"font-size:12px;color:#6b7280;font-weight:600;letter-spacing:0.04em;\">TICKET DESK | Password reset</div>
                <div style=\"margin-top:6px;font-size:20px;font-weight:700;color:#111827;\">Hello {_esc(name)}</div>
              </td>
            </tr>
            <tr>
              <td style=\"padding:20px 24px;color:#111827;font-size:14px;\">
                <p>We received a request to reset the password of your account.
                The link below is valid for {ttl_min} minutes.</p>
                <p style=\"margin:24px 0;\">
                  <a href=\"{_esc(link_url)}\" style=\"display:inline-block;padding:10px 18px;border-radius:8px;background:#111827;color:#ffffff;text-decoration:none;font-weight:600;\">Reset password</a>
                </p>
                <p style=\"color:#6b7280;font-size:12px;\">If you did not ask for this, you can ignore this message.</p>
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>
"""


def build_password_reset_mail(user: UserRecord, token: str, *, app_base_url: str, ttl_min: int) -> MailPayload:
    link = reset_password_link(app_base_url, token)
    return MailPayload(
        event_type="password_reset",
        subject="[Ticket Desk] Reset your password",
        body_html=_render_html(name=user.name, link_url=link, ttl_min=ttl_min),
        body_text=_render_plain(name=user.name, link_url=link, ttl_min=ttl_min),
        recipient_email=user.email,
    )

"""
Send a test email through the configured provider (Mailgun, else SMTP).
Usage: python scripts/send_test_email.py <to_email>
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.config import get_settings
from app.services.notifications import send_email


def main():
    to_email = (sys.argv[1] if len(sys.argv) > 1 else "").strip()
    if not to_email:
        print("Usage: python scripts/send_test_email.py <to_email>")
        sys.exit(1)

    settings = get_settings()
    if settings.mailgun_api_key and settings.mailgun_domain:
        print(f"Provider: Mailgun ({settings.mailgun_domain})")
    elif settings.smtp_host and settings.smtp_user:
        print(f"Provider: SMTP ({settings.smtp_host}:{settings.smtp_port})")
    else:
        print("No provider configured. Set MAILGUN_* or SMTP_* in .env")
        sys.exit(1)

    ok = send_email(
        settings,
        to_email,
        "[Lumina] Test email",
        "<p>This is a <strong>test email</strong> from Lumina.</p>",
        "This is a test email from Lumina.",
    )
    print("Sent." if ok else "Send failed; see the log above.")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()

from core.imports import Message, current_app, render_template, datetime
from core.extensions import mail


def send_email(to, subject, body):
    msg = Message(subject=subject, recipients=[to])
    msg.html = body
    try:
        mail.send(msg)
    except Exception as e:
        current_app.logger.error("Error sending email to %s: %s", to, e)
        return False
    return True


def send_password_reset_email(user, token):
    reset_url = f"{current_app.config['FRONTEND_URL']}/reset-password?token={token}"

    if not current_app.config.get("MAIL_USERNAME") and not current_app.testing:
        current_app.logger.info("Mail not configured; password reset URL for %s: %s", user.email, reset_url)
        return False

    body = render_template(
        "password_reset.html",
        first_name=user.first_name,
        reset_url=reset_url,
        store_name=current_app.config["STORE_NAME"],
        year=datetime.now().year,
    )
    sent = send_email(user.email, f"Reset Your {current_app.config['STORE_NAME']} Password", body)
    if sent:
        current_app.logger.info("Password reset email sent to %s", user.email)
    return sent

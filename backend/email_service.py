"""
Service d'emails SendGrid pour SamTech Voyages
- Relances de créances (clients des agences)
- Notifications email créées depuis le back-office
- Changement de statut d'une agence (approbation / refus / suspension)
- Alertes critiques (tâches planifiées en échec)
"""

import os
import logging
from datetime import datetime, timezone
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

logger = logging.getLogger("email_service")

# Configuration
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
ALERT_EMAIL = os.environ.get('ALERT_EMAIL', 'superadmin@samtech.com')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', 'noreply@samtech.fr')
SENDER_NAME = os.environ.get('SENDER_NAME', 'SamTech Voyages')

AGENCE_STATUS_SUBJECTS = {
    "approuve": "✅ Votre agence a été approuvée",
    "rejete": "Votre demande d'inscription a été refusée",
    "suspendu": "⚠️ Votre agence a été suspendue",
}


def _layout(title: str, body_html: str, color: str = "#1E40AF") -> str:
    return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }}
                .container {{ max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
                .header {{ background: {color}; color: white; padding: 20px; text-align: center; }}
                .header h1 {{ margin: 0; font-size: 22px; }}
                .content {{ padding: 30px; color: #1F2937; }}
                .box {{ background: #F3F4F6; padding: 15px; border-radius: 4px; margin: 20px 0; }}
                .footer {{ background: #F9FAFB; padding: 15px; text-align: center; font-size: 12px; color: #6B7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{title}</h1></div>
                <div class="content">{body_html}</div>
                <div class="footer">SamTech Voyages - {datetime.now(timezone.utc).strftime('%d/%m/%Y')}</div>
            </div>
        </body>
        </html>
        """


class EmailService:
    """Service centralisé pour l'envoi d'emails"""

    def __init__(self):
        self.api_key = SENDGRID_API_KEY
        self.sender = SENDER_EMAIL
        self.sender_name = SENDER_NAME
        self.alert_recipient = ALERT_EMAIL

    def _send_email(self, to_email: str, subject: str, html_content: str, sender_name: str = None) -> bool:
        """Envoie un email via SendGrid"""
        if not self.api_key:
            logger.error("SENDGRID_API_KEY non configurée")
            return False

        if not to_email:
            logger.error(f"Email sans destinataire: {subject}")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, sender_name or self.sender_name),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email envoyé à {to_email}: {subject}")
                return True
            else:
                logger.error(f"Erreur envoi email: {response.status_code}")
                return False

        except Exception as e:
            logger.error(f"Exception envoi email: {str(e)}")
            return False

    # ==================== CRÉANCES ====================

    def send_creance_reminder(self, facture: dict, client: dict, agence_nom: str, message: str = "") -> bool:
        """Relance d'une facture impayée, envoyée au nom de l'agence"""
        numero = facture.get("numero", "")
        subject = f"Rappel de paiement - Facture {numero}"
        client_nom = " ".join(p for p in [client.get("prenom"), client.get("nom")] if p)
        custom = f"<p>{message}</p>" if message else ""

        body = f"""
            <p>Bonjour {client_nom},</p>
            <p>Sauf erreur de notre part, la facture ci-dessous reste impayée à ce jour.</p>
            <div class="box">
                <strong>Facture:</strong> {numero}<br>
                <strong>Montant TTC:</strong> {facture.get('montantTTC', 0):.2f} €<br>
                <strong>Échéance:</strong> {str(facture.get('dateEcheance', ''))[:10]}
            </div>
            {custom}
            <p>Merci de procéder au règlement dans les meilleurs délais.</p>
            <p>Cordialement,<br>{agence_nom}</p>
        """
        return self._send_email(client.get("email"), subject, _layout("Rappel de paiement", body, "#F59E0B"), agence_nom)

    # ==================== NOTIFICATIONS ====================

    def send_notification(self, to_email: str, titre: str, message: str) -> bool:
        body = f"<p>{message}</p>"
        return self._send_email(to_email, titre, _layout(titre, body))

    # ==================== AGENCES ====================

    def send_agence_status(self, agence: dict, statut: str) -> bool:
        """Informe l'agence de la décision du superadmin"""
        subject = AGENCE_STATUS_SUBJECTS.get(statut)
        if not subject:
            return False

        if statut == "approuve":
            text = "Votre compte est désormais actif. Vous pouvez vous connecter à votre espace agence."
        elif statut == "rejete":
            text = "Votre demande d'inscription n'a pas été retenue. Contactez-nous pour plus d'informations."
        else:
            text = "L'accès à votre espace agence est temporairement suspendu. Contactez le support."

        body = f"<p>Bonjour {agence.get('nom', '')},</p><p>{text}</p>"
        return self._send_email(agence.get("email"), subject, _layout(subject, body))

    # ==================== ALERTES CRITIQUES ====================

    def send_critical_alert(self, alert_type: str, message: str, details: dict = None) -> bool:
        """
        Envoie une alerte critique immédiate au superadmin.
        Types: SCHEDULER_FAILURE, BACKUP_FAILURE, SYSTEM_ERROR
        """
        subject = f"🚨 ALERTE CRITIQUE - {alert_type}"

        details_html = ""
        if details:
            details_html = "<ul>"
            for key, value in details.items():
                details_html += f"<li><strong>{key}:</strong> {value}</li>"
            details_html += "</ul>"

        body = f"""
            <p>{datetime.now(timezone.utc).strftime('%d/%m/%Y %H:%M:%S')} UTC</p>
            <div class="box">
                <strong>Type:</strong> {alert_type}<br>
                <strong>Message:</strong> {message}
            </div>
            {details_html}
        """
        return self._send_email(self.alert_recipient, subject, _layout("🚨 ALERTE CRITIQUE", body, "#DC2626"))


# Instance globale
email_service = EmailService()

import logging
import re

import httpx

from copo.config import Config

logger = logging.getLogger(__name__)

class WhatsAppError(Exception):
    pass

class WhatsAppService:
    """
    Delivers one-time passwords over the WhatsApp Cloud API.

    In DEVELOPMENT mode nothing leaves the process: the message is written to
    the log instead, which is how OTPs are read during local testing.
    """

    def __init__(self):
        self.api_url = Config.WHATSAPP_API_URL
        self.phone_number_id = Config.WHATSAPP_PHONE_NUMBER_ID
        self.access_token = Config.WHATSAPP_ACCESS_TOKEN
        self.is_production = Config.WHATSAPP_MODE == "PRODUCTION"

    @staticmethod
    def format_number(number: str) -> str:
        """Digits only, with the default country code added to bare 10-digit numbers."""
        cleaned = re.sub(r"\D", "", number or "")
        if len(cleaned) == 10 and not cleaned.startswith(Config.DEFAULT_COUNTRY_CODE):
            cleaned = Config.DEFAULT_COUNTRY_CODE + cleaned
        return cleaned

    @staticmethod
    def otp_message(otp: str) -> str:
        return f"Your COPO Management System OTP is: {otp}. Valid for {Config.OTP_EXPIRY_MINUTES} minutes."

    async def send_message(self, number: str, message: str):
        to = self.format_number(number)
        if not to:
            raise WhatsAppError("Invalid WhatsApp number")

        if not self.is_production:
            logger.info(f"DEVELOPMENT MODE: would send WhatsApp message to {to}: {message}")
            return {"development": True, "to": to}

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": message},
        }
        headers = {
            "Authorization": f"Bearer {self.access_token}"
        }

        async with httpx.AsyncClient(timeout=15) as client:
            response = await client.post(
                f"{self.api_url}/{self.phone_number_id}/messages",
                json=payload,
                headers=headers
            )

            if response.status_code >= 300:
                raise WhatsAppError(f"WhatsApp Error: {response.status_code} {response.text}")

            return response.json()

    async def send_otp(self, number: str, otp: str) -> bool:
        try:
            await self.send_message(number, self.otp_message(otp))
            return True
        except (WhatsAppError, httpx.HTTPError) as e:
            logger.error(f"Failed to send OTP over WhatsApp: {e}")
            return False

whatsapp_service = WhatsAppService()

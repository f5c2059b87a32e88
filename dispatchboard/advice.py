from typing import Optional

import requests

from .logger import get_logger
from .models import Job, JobType

logger = get_logger()

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

MISSING_KEY_TEXT = "Błąd konfiguracji: brak klucza API Gemini (GEMINI_API_KEY)."
EMPTY_TEXT = "Nie udało się wygenerować porady."
FAILURE_TEXT = "Błąd połączenia z asystentem AI."

PROMPT = """Jesteś asystentem logistycznym dla firmy rolniczej.
Analizujesz zlecenie ({kind}):
Maszyna: {title}
Klient: {client}
Adres: {address}
Etap: {phase}

Podaj krótką, profesjonalną notatkę dla kierowcy (max 3 zdania).
Uwzględnij typ maszyny (czy potrzebny specjalny transport/laweta niskopodwoziowa, jeśli wynika to z nazwy) oraz poradę dotyczącą dojazdu do obszarów wiejskich w Polsce.
Mów po polsku."""


def build_prompt(job: Job) -> str:
    return PROMPT.format(
        kind="dostawa" if job.type is JobType.TRANSPORT else "serwis",
        title=job.title,
        client=job.client_name,
        address=job.address or "brak adresu",
        phase=job.phase_name,
    )


class AdviceService:
    """Best-effort driver notes from Gemini. Never raises; failures yield a fallback text."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, job: Job) -> str:
        if not self.api_key:
            return MISSING_KEY_TEXT

        payload = {"contents": [{"parts": [{"text": build_prompt(job)}]}]}
        try:
            resp = self.session.post(
                GEMINI_ENDPOINT.format(model=self.model),
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Advice request failed", job_id=job.id, error=str(e))
            return FAILURE_TEXT

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts).strip()
        except (KeyError, IndexError, TypeError):
            text = ""
        return text or EMPTY_TEXT

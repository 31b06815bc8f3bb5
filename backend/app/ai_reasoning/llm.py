import asyncio
import json
import logging
import re
from openai import AsyncOpenAI
from core.config import MODEL_NAME, OPENAI_API_KEY

logger = logging.getLogger("app.ai_reasoning.llm")

client = AsyncOpenAI(api_key=OPENAI_API_KEY)


async def call_llm(prompt: str, timeout_sec: float = 12.0, retries: int = 2, temperature: float = 0.2) -> str:
    """
    Sends prompt to LLM and returns raw text response.
    MUST return JSON string (caller parses); "{}" when every attempt failed.
    """
    if not str(prompt or "").strip():
        return "{}"

    last_error: Exception | None = None
    for attempt in range(max(1, retries + 1)):
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=MODEL_NAME,
                    messages=[
                        {
                            "role": "system",
                            "content": "You are a strict JSON generator for a technical interview platform. Output JSON only."
                        },
                        {
                            "role": "user",
                            "content": prompt
                        }
                    ],
                    temperature=temperature,
                ),
                timeout=timeout_sec,
            )
            message = response.choices[0].message.content
            return str(message or "{}").strip() or "{}"
        except asyncio.TimeoutError as exc:
            last_error = exc
            logger.warning("call_llm timeout | attempt=%s", attempt + 1)
        except Exception as exc:
            last_error = exc
            logger.warning("call_llm failure | attempt=%s err=%s", attempt + 1, exc)

        if attempt < retries:
            await asyncio.sleep(0.35 * (attempt + 1))

    logger.warning("call_llm fallback activated | err=%s", last_error)
    return "{}"


def extract_json(text: str):
    text = (text or "").strip()
    if not text:
        return None

    try:
        return json.loads(text)
    except Exception:
        pass

    fenced = re.search(r"```(?:json)?\s*([\[{][\s\S]*?[\]}])\s*```", text, re.IGNORECASE)
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except Exception:
            pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except Exception:
                continue

    return None

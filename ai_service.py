import json
import re
import logging
import httpx
from openai import OpenAI
from httpcore import ReadTimeout, ConnectTimeout
from openai import APIConnectionError, APITimeoutError, APIStatusError, RateLimitError

from app import app
from analytics_service import round_half_up

# Gateway settings come from the app config (LLM_GATEWAY_URL / LLM_API_KEY)
LLM_API_KEY = app.config.get("LLM_API_KEY")
if not LLM_API_KEY:
    logging.warning("LLM_API_KEY not found in environment variables")
    client = None
else:
    # Configure the OpenAI-compatible client with timeout settings
    client = OpenAI(
        api_key=LLM_API_KEY,
        base_url=app.config.get("LLM_GATEWAY_URL") or None,
        timeout=httpx.Timeout(60.0, connect=10.0),
        max_retries=3
    )

JSON_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")

FALLBACK_VIDEO_STRENGTHS = [
    "Good attempt at answering the question",
    "Maintained reasonable pace",
    "Showed enthusiasm",
]

FALLBACK_VIDEO_IMPROVEMENTS = [
    "Work on reducing filler words",
    "Maintain better eye contact with camera",
    "Structure answers using frameworks like STAR",
]


class AIGatewayError(Exception):
    """Raised when the LLM gateway rejects or fails a request"""

    def __init__(self, message, status_code=500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AIGatewayNotConfigured(AIGatewayError):
    def __init__(self, message="AI gateway is not configured"):
        super().__init__(message, status_code=503)


def _require_client():
    if client is None:
        logging.error("LLM client not initialized - API key missing")
        raise AIGatewayNotConfigured()
    return client


def _translate_error(error):
    """Map an OpenAI client exception to an AIGatewayError with the HTTP status to surface"""
    if isinstance(error, RateLimitError):
        return AIGatewayError("Rate limits exceeded, please try again later.", 429)
    if isinstance(error, APIStatusError):
        if error.status_code == 402:
            return AIGatewayError("AI credits exhausted, please add funds to continue.", 402)
        return AIGatewayError(f"AI gateway error: {error.status_code}", 500)
    if isinstance(error, (APIConnectionError, APITimeoutError, httpx.TimeoutException, ReadTimeout, ConnectTimeout)):
        return AIGatewayError("AI gateway is unreachable, please try again later.", 502)
    return AIGatewayError(str(error) or "Unknown AI gateway error", 500)


def extract_json(text):
    """
    Parse a JSON object out of a model reply.
    Accepts a bare object or one wrapped in a ```json fenced block.
    Raises ValueError when no object can be decoded.
    """
    if not text:
        raise ValueError("Empty AI response")
    match = JSON_BLOCK_PATTERN.search(text)
    json_str = match.group(1) if match else text.strip()
    parsed = json.loads(json_str)
    if not isinstance(parsed, dict):
        raise ValueError("AI response is not a JSON object")
    return parsed


def complete_chat(messages, model=None, temperature=None):
    """Send a non-streamed chat completion and return the reply text"""
    llm = _require_client()
    params = {
        "model": model or app.config["LLM_CHAT_MODEL"],
        "messages": messages,
    }
    if temperature is not None:
        params["temperature"] = temperature

    try:
        response = llm.chat.completions.create(**params)
    except Exception as e:
        logging.error(f"AI gateway error on completion: {e}")
        raise _translate_error(e)

    return response.choices[0].message.content or ""


def open_chat_stream(messages, model=None, temperature=0.7):
    """
    Start a streamed chat completion.
    Errors raised before the first token are translated here so callers can
    still answer with a JSON error instead of a half-written stream.
    """
    llm = _require_client()
    try:
        return llm.chat.completions.create(
            model=model or app.config["LLM_CHAT_MODEL"],
            messages=messages,
            temperature=temperature,
            stream=True
        )
    except Exception as e:
        logging.error(f"AI gateway error opening stream: {e}")
        raise _translate_error(e)


def iter_stream_deltas(stream):
    """Yield the text deltas of a streamed completion"""
    try:
        for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content
    except AIGatewayError:
        raise
    except Exception as e:
        logging.error(f"AI gateway stream interrupted: {e}")
        raise _translate_error(e)


def analyze_video_interview(question, duration_seconds):
    """
    Score a recorded answer. The model is given the question and duration
    and returns delivery, body language and confidence scores.
    Falls back to a canned analysis when the reply cannot be parsed.
    """
    analysis_prompt = f"""You are an expert interview coach analyzing a video interview response.

Question asked: "{question}"
Duration: {duration_seconds or 0} seconds

Provide a comprehensive analysis with:
1. Overall assessment (1-2 paragraphs)
2. Delivery score (0-100) - evaluate speech clarity, pace, filler words
3. Body language score (0-100) - evaluate posture, eye contact, gestures
4. Confidence score (0-100) - evaluate overall presence and assurance
5. List 3-4 specific strengths
6. List 3-4 specific areas for improvement

Format your response as JSON with this structure:
{{
  "delivery_score": number,
  "body_language_score": number,
  "confidence_score": number,
  "overall_score": number,
  "feedback_summary": "string with detailed feedback",
  "strengths": ["strength1", "strength2", ...],
  "improvements": ["improvement1", "improvement2", ...]
}}

Base your scores on typical interview performance for B.Tech CSE students preparing for internships."""

    ai_response = complete_chat(
        [{"role": "user", "content": analysis_prompt}],
        model=app.config["LLM_ANALYSIS_MODEL"]
    )
    logging.info(f"Video analysis response received ({len(ai_response)} chars)")

    try:
        analysis = extract_json(ai_response)
    except ValueError as e:
        logging.error(f"Failed to parse video analysis response: {e}")
        analysis = {
            "delivery_score": 75,
            "body_language_score": 70,
            "confidence_score": 72,
            "overall_score": 72,
            "feedback_summary": ai_response,
            "strengths": list(FALLBACK_VIDEO_STRENGTHS),
            "improvements": list(FALLBACK_VIDEO_IMPROVEMENTS),
        }

    return normalize_video_analysis(analysis)


def _clamp_score(value):
    try:
        return max(0, min(100, round_half_up(float(value))))
    except (TypeError, ValueError, OverflowError):
        return 0


def normalize_video_analysis(analysis):
    """Clamp scores to 0-100 and derive the overall score when the model omits it"""
    result = dict(analysis)
    for key in ("delivery_score", "body_language_score", "confidence_score"):
        result[key] = _clamp_score(result.get(key))

    if not result.get("overall_score"):
        result["overall_score"] = round_half_up(
            (result["delivery_score"] + result["body_language_score"] + result["confidence_score"]) / 3
        )
    result["overall_score"] = _clamp_score(result["overall_score"])

    result["feedback_summary"] = result.get("feedback_summary") or ""
    result["strengths"] = list(result.get("strengths") or [])
    result["improvements"] = list(result.get("improvements") or [])
    return result


def generate_career_guidance(user_context):
    """
    Ask the gateway for personalized career guidance.
    Raises AIGatewayError when the reply is not valid JSON.
    """
    guidance_prompt = f"""You are a career counselor and interview preparation expert. Analyze this user's profile and performance data, then provide personalized career guidance.

USER DATA:
{json.dumps(user_context, indent=2, default=str)}

TASK: Provide comprehensive, personalized guidance in JSON format:
{{
  "recommended_roles": [
    {{
      "title": "Role title",
      "reason": "Why this role fits the user",
      "market_demand": "Current demand level"
    }}
  ],
  "skill_gaps": [
    {{
      "skill": "Skill name",
      "importance": "Why it matters",
      "learning_resource": "Suggested resource"
    }}
  ],
  "learning_priorities": [
    {{
      "priority": 1,
      "topic": "Topic to learn",
      "reason": "Why focus on this now",
      "timeline": "Suggested timeframe"
    }}
  ],
  "preparation_roadmap": "A detailed 3-month preparation plan with weekly milestones",
  "market_insights": "Key insights about the current job market and how the user can position themselves"
}}

Consider:
- User's current performance in interviews
- Gaps in their preparation based on interview history
- Current job market trends and demand
- Realistic skill development timeline
- Practical, actionable advice

Be specific, encouraging, and data-driven."""

    ai_response = complete_chat(
        [{"role": "user", "content": guidance_prompt}],
        model=app.config["LLM_GUIDANCE_MODEL"],
        temperature=0.7
    )

    try:
        return extract_json(ai_response)
    except ValueError as e:
        logging.error(f"Failed to parse guidance response: {e}")
        raise AIGatewayError("Failed to parse guidance data", 500)


def research_job_trends(category):
    """Ask the gateway for current hiring trends in one job category"""
    research_prompt = f"""You are a job market analyst tracking hiring for early-career engineers.

Research the current job market for the category "{category}" and list 3-5 roles that are in demand.

Return JSON in this format:
{{
  "trends": [
    {{
      "title": "Role title",
      "description": "What the role involves and why it is trending",
      "demand_level": "High|Medium|Low",
      "growth_rate": "e.g. +15% YoY",
      "salary_range": "e.g. 6-12 LPA",
      "trending_skills": ["skill1", "skill2"],
      "key_companies": ["company1", "company2"],
      "preparation_tips": ["tip1", "tip2"]
    }}
  ]
}}"""

    ai_response = complete_chat(
        [
            {"role": "system", "content": "You are a labor market research assistant. Respond with JSON only."},
            {"role": "user", "content": research_prompt}
        ],
        model=app.config["LLM_ANALYSIS_MODEL"],
        temperature=0.4
    )

    try:
        result = extract_json(ai_response)
    except ValueError as e:
        logging.error(f"Failed to parse job trend response for {category}: {e}")
        raise AIGatewayError("Failed to parse job trend data", 500)

    trends = result.get("trends", [])
    return [trend for trend in trends if isinstance(trend, dict) and trend.get("title")]


def transcribe_audio_file(filename, data, content_type=None):
    """Transcribe an audio payload through the gateway's transcription endpoint"""
    llm = _require_client()
    try:
        transcript = llm.audio.transcriptions.create(
            model=app.config["LLM_TRANSCRIBE_MODEL"],
            file=(filename, data, content_type) if content_type else (filename, data),
            response_format="text"
        )
    except Exception as e:
        logging.error(f"Audio transcription error: {e}")
        raise _translate_error(e)

    if isinstance(transcript, str):
        return transcript.strip()
    return (getattr(transcript, "text", "") or "").strip()

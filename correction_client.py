"""OpenAI-backed proofreading of subtitle text, one subtitle per line."""
import base64
import logging
import mimetypes
import os
import time
from dataclasses import dataclass, field
from typing import List

import openai
from dotenv import load_dotenv
from openai import OpenAI, RateLimitError

DEFAULT_MODEL = 'gpt-4.1-mini'
TEXT_REFERENCE_SUFFIXES = ('.txt', '.md', '.csv')


class CorrectionError(Exception):
    """Raised when the correction service cannot produce a result."""


@dataclass
class ReferenceConfig:
    """Names and documents the proofreader should respect."""
    characters: List[str] = field(default_factory=list)
    movies: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    def add_character(self, name: str) -> bool:
        return _add_unique(self.characters, name)

    def add_movie(self, title: str) -> bool:
        return _add_unique(self.movies, title)

    def remove_character(self, name: str) -> None:
        self.characters = [c for c in self.characters if c != name]

    def remove_movie(self, title: str) -> None:
        self.movies = [m for m in self.movies if m != title]


def _add_unique(values: List[str], value: str) -> bool:
    value = value.strip()
    if not value or value in values:
        return False
    values.append(value)
    return True


def build_system_prompt(config: ReferenceConfig) -> str:
    """Build the proofreading instruction for the given reference config."""
    characters = ', '.join(config.characters) if config.characters else '(없음)'
    movies = ', '.join(config.movies) if config.movies else '(없음)'
    return (
        "당신은 대한민국 최고의 영화 및 영상 자막 교정 전문가입니다.\n"
        "제공되는 텍스트의 내용을 한국어 맞춤법, 띄어쓰기, 고유명사 표기법에 맞춰 교정하십시오.\n"
        "\n"
        "[입력 데이터 구조]\n"
        "- 입력은 타임코드가 없는 순수한 텍스트 라인들의 나열입니다.\n"
        "- 절대 줄바꿈(개행)을 추가하거나 삭제하지 마십시오. 입력된 줄 수와 출력된 줄 수가 정확히 일치해야 합니다.\n"
        "- 각 줄은 하나의 자막 블록에 해당합니다.\n"
        "\n"
        "[교정 가이드]\n"
        f"1. 등장인물: {characters}\n"
        "   - 위 인물명은 반드시 지키고, 문맥에 맞게 처리하십시오.\n"
        f"2. 영화/작품: {movies}\n"
        "   - 영화 제목은 반드시 <영화제목> 형태로 홑화살괄호를 사용하여 감싸십시오.\n"
        "3. 맞춤법: 한글 맞춤법과 띄어쓰기를 교정하십시오.\n"
        "4. 마침표 삭제: 문장 끝의 마침표(.)는 제거하십시오. 물음표(?)나 느낌표(!)는 유지합니다.\n"
        "5. 참고 문서: 첨부된 참고 문서의 내용을 바탕으로 고유명사나 맥락을 이해하십시오.\n"
        "\n"
        "출력은 오직 교정된 텍스트만 라인별로 출력하십시오. 부연 설명은 하지 마십시오.\n"
    )


def reference_parts(files: List[str]) -> list:
    """Turn reference documents into chat content parts."""
    parts = []
    for path in files:
        name = os.path.basename(path)
        mime, _ = mimetypes.guess_type(path)
        if path.lower().endswith(TEXT_REFERENCE_SUFFIXES) or (mime or '').startswith('text/'):
            with open(path, encoding='utf-8-sig', errors='replace') as f:
                content = f.read()
            parts.append({
                "type": "text",
                "text": f"[참고 문서 ({name}) 내용 시작]\n{content}\n[참고 문서 내용 끝]",
            })
        elif (mime or '').startswith('image/'):
            with open(path, 'rb') as f:
                data = base64.b64encode(f.read()).decode('ascii')
            parts.append({"type": "text", "text": f"[참고 문서: {name}]"})
            parts.append({"type": "image_url", "image_url": {"url": f"data:{mime};base64,{data}"}})
        else:
            logging.warning(f"Skipping unsupported reference document: {path}")
    return parts


def build_messages(text: str, config: ReferenceConfig) -> list:
    content = reference_parts(config.files) + [{"type": "text", "text": text}]
    return [
        {"role": "system", "content": build_system_prompt(config)},
        {"role": "user", "content": content},
    ]


def call_openai_api(messages: list, model: str = DEFAULT_MODEL, temperature: float = 0.2) -> str:
    """Call the OpenAI Chat Completions API with retry and error handling."""
    load_dotenv()
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise CorrectionError("OPENAI_API_KEY is not set")
    client = OpenAI(api_key=api_key)
    for _attempt in range(5):
        try:
            resp = client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
            )
            return (resp.choices[0].message.content or '').strip()
        except RateLimitError:
            logging.warning("Rate limit hit, retrying in 5s...")
            time.sleep(5)
        except openai.BadRequestError as e:
            raise CorrectionError(f"OpenAI rejected the request: {e}") from e
        except openai.OpenAIError as e:
            logging.warning(f"OpenAI API error: {e}, retrying in 5s...")
            time.sleep(5)
    raise CorrectionError("OpenAI API failed after multiple retries")


def correct_text(text: str, config: ReferenceConfig, model: str = None) -> str:
    """Return the proofread version of newline-separated subtitle text."""
    load_dotenv()
    model = model or os.getenv("CORRECTION_MODEL", DEFAULT_MODEL)
    return call_openai_api(build_messages(text, config), model=model)

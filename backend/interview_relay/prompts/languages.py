from dataclasses import dataclass

DEFAULT_LANGUAGE = "en-US"


@dataclass(frozen=True)
class LanguageConfig:
    code: str
    name: str
    english_name: str
    greeting: str


LANGUAGES: dict[str, LanguageConfig] = {
    "pt-BR": LanguageConfig(
        code="pt-BR",
        name="Português (Brasil)",
        english_name="Portuguese (Brazil)",
        greeting="Olá {candidateName}! Bem-vindo à sua entrevista simulada com a Vocaid. Sou seu entrevistador de IA, e hoje vou avaliar suas habilidades para a posição de {jobTitle} na {companyName}. Esta entrevista durará cerca de 15 minutos. Vamos começar!",
    ),
    "en-US": LanguageConfig(
        code="en-US",
        name="English (US)",
        english_name="English (United States)",
        greeting="Hello {candidateName}! Welcome to your mock interview with Vocaid. I'm your AI interviewer, and today I'll be evaluating your skills for the {jobTitle} position at {companyName}. This interview will take about 15 minutes. Let's begin!",
    ),
    "en-GB": LanguageConfig(
        code="en-GB",
        name="English (UK)",
        english_name="English (United Kingdom)",
        greeting="Hello {candidateName}! Welcome to your mock interview with Vocaid. I'm your AI interviewer, and today I'll be assessing your skills for the {jobTitle} role at {companyName}. This interview will take approximately 15 minutes. Shall we begin?",
    ),
    "es-ES": LanguageConfig(
        code="es-ES",
        name="Español (España)",
        english_name="Spanish (Spain)",
        greeting="¡Hola {candidateName}! Bienvenido a tu entrevista simulada con Vocaid. Soy tu entrevistador de IA, y hoy evaluaré tus habilidades para el puesto de {jobTitle} en {companyName}. Esta entrevista durará unos 15 minutos. ¡Comencemos!",
    ),
    "es-MX": LanguageConfig(
        code="es-MX",
        name="Español (México)",
        english_name="Spanish (Mexico)",
        greeting="¡Hola {candidateName}! Bienvenido a tu entrevista de práctica con Vocaid. Soy tu entrevistador de IA, y hoy evaluaré tus habilidades para el puesto de {jobTitle} en {companyName}. Esta entrevista tomará unos 15 minutos. ¡Empecemos!",
    ),
    "es-AR": LanguageConfig(
        code="es-AR",
        name="Español (Argentina)",
        english_name="Spanish (Argentina)",
        greeting="¡Hola {candidateName}! Bienvenido a tu entrevista de práctica con Vocaid. Soy tu entrevistador de IA, y hoy voy a evaluar tus habilidades para el puesto de {jobTitle} en {companyName}. Esta entrevista va a durar unos 15 minutos. ¡Arranquemos!",
    ),
    "fr-FR": LanguageConfig(
        code="fr-FR",
        name="Français",
        english_name="French",
        greeting="Bonjour {candidateName} ! Bienvenue à votre entretien simulé avec Vocaid. Je suis votre intervieweur IA, et aujourd'hui j'évaluerai vos compétences pour le poste de {jobTitle} chez {companyName}. Cet entretien durera environ 15 minutes. Commençons !",
    ),
    "ru-RU": LanguageConfig(
        code="ru-RU",
        name="Русский",
        english_name="Russian",
        greeting="Здравствуйте, {candidateName}! Добро пожаловать на пробное собеседование с Vocaid. Я ваш ИИ-интервьюер, и сегодня я оценю ваши навыки для позиции {jobTitle} в компании {companyName}. Это собеседование продлится около 15 минут. Начнём!",
    ),
    "zh-CN": LanguageConfig(
        code="zh-CN",
        name="简体中文",
        english_name="Chinese (Mandarin)",
        greeting="您好 {candidateName}！欢迎参加 Vocaid 模拟面试。我是您的 AI 面试官，今天我将评估您申请 {companyName} 公司 {jobTitle} 职位的技能。这次面试大约需要15分钟。让我们开始吧！",
    ),
    "hi-IN": LanguageConfig(
        code="hi-IN",
        name="हिन्दी",
        english_name="Hindi",
        greeting="नमस्ते {candidateName}! Vocaid के साथ आपके मॉक इंटरव्यू में आपका स्वागत है। मैं आपका AI इंटरव्यूअर हूं, और आज मैं {companyName} में {jobTitle} पद के लिए आपके कौशल का मूल्यांकन करूंगा। यह इंटरव्यू लगभग 15 मिनट का होगा। चलिए शुरू करते हैं!",
    ),
}


def is_supported_language(code: str | None) -> bool:
    return str(code or "") in LANGUAGES


def get_language(code: str | None) -> LanguageConfig:
    return LANGUAGES.get(str(code or ""), LANGUAGES[DEFAULT_LANGUAGE])


def resolve_language(code: str | None) -> str:
    return str(code) if is_supported_language(code) else DEFAULT_LANGUAGE

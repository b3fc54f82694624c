"""Fixed chat texts (pt-BR) sent by the bot.

Admin-editable variants live in `message_templates`; the builders here are
the fallbacks used when a template is missing.
"""

from __future__ import annotations

import os
from decimal import Decimal

DEFAULT_APP_BASE_URL = "https://app.pixzen.site"


def app_url(path: str = "") -> str:
    """Absolute link into the web app (APP_BASE_URL)."""
    base = os.environ.get("APP_BASE_URL", DEFAULT_APP_BASE_URL).rstrip("/")
    return f"{base}{path}"


def format_brl(value: Decimal | float | int) -> str:
    """Two decimals with a comma separator (1500 -> "1500,00")."""
    return f"{Decimal(str(value)):.2f}".replace(".", ",")


WELCOME_MESSAGE = """🎉 *Bem-vindo ao PixZen WhatsApp!*

Agora você pode registrar suas finanças por aqui de forma rápida e fácil!

📝 *Como usar:*

*Texto:* Apenas me conte o que gastou ou recebeu
• "Gastei 50 reais no mercado"
• "Recebi 1000 de salário"
• "Paguei 150 de luz"

🎤 *Áudio:* Grave um áudio me contando a transação

📷 *Foto:* Envie foto de comprovantes, notas fiscais ou recibos

Todas as transações aparecem automaticamente no seu app! 📱"""

HELP_MESSAGE = """📖 *Ajuda - PixZen WhatsApp*

*Comandos:*
• /ajuda - Mostra esta mensagem
• /saldo - Consulta seu saldo atual
• /resumo - Resumo do mês

*Exemplos de mensagens:*
💸 Despesas:
• "Gastei 35 no almoço"
• "Paguei 200 de internet"
• "Abasteci 150 de gasolina"

💰 Receitas:
• "Recebi 5000 de salário"
• "Entrou 500 de freelance"
• "Ganhei 100 de presente"

📷 Comprovantes:
• Envie fotos de notas fiscais
• Envie comprovantes PIX
• Envie recibos de pagamento

Dúvidas? Acesse o app ou fale com nosso suporte!"""


class ErrorMessages:
    GENERAL = "❌ Ops! Algo deu errado. Tente novamente em alguns segundos."
    AUDIO_FAILED = (
        "❌ Não consegui processar o áudio. "
        "Tente falar mais claramente ou envie uma mensagem de texto."
    )
    IMAGE_FAILED = "❌ Não consegui processar a imagem. Envie uma foto mais nítida do comprovante."
    SAVE_FAILED = "❌ Não consegui salvar a transação. Tente novamente em alguns segundos."


# Acknowledgements sent before slow work
AUDIO_ACK = "🎤 Processando seu áudio..."
IMAGE_ACK = "📸 Analisando sua imagem..."
DOCUMENT_ACK = "Analisando seu documento..."

TEXT_NOT_UNDERSTOOD = (
    "Nao consegui identificar uma transacao nessa mensagem.\n\n"
    "Tente algo como:\n"
    '- "gastei 50 no mercado"\n'
    '- "recebi 1500 de salario"\n'
    '- "paguei 89,90 de internet"\n\n'
    "Digite /ajuda para ver mais exemplos."
)

AUDIO_NOT_UNDERSTOOD = (
    "❌ Não consegui entender o áudio. "
    "Tente falar mais claramente ou envie uma mensagem de texto."
)

IMAGE_NOT_UNDERSTOOD = (
    "🤔 Não consegui identificar uma transação nessa imagem.\n\n"
    "Para melhores resultados, envie:\n"
    "• Cupons fiscais\n"
    "• Comprovantes de pagamento\n"
    "• Notas fiscais\n"
    "• Extratos bancários\n\n"
    "A imagem deve estar nítida e legível."
)

DOCUMENT_PDF_ONLY = "Por enquanto, aceito apenas documentos PDF (comprovantes, extratos, etc)."
DOCUMENT_DOWNLOAD_FAILED = "Nao consegui baixar o documento. Tente enviar como imagem."
DOCUMENT_UNREADABLE = "Nao consegui ler o PDF. Tente enviar como imagem/foto do comprovante."
DOCUMENT_SCANNED = "Este PDF parece ser uma imagem escaneada. Tente enviar o comprovante como foto."

UNSUPPORTED_TYPE = (
    "📝 Por enquanto, aceito apenas:\n"
    "• Mensagens de texto\n"
    "• Áudios\n"
    "• Imagens de comprovantes\n"
    "• Documentos PDF\n\n"
    "Digite /ajuda para ver os comandos disponíveis."
)

# Feature names used in the premium upsell
PREMIUM_FEATURES = {
    "audio": "O processamento de áudio",
    "image": "O processamento de imagens",
    "document": "O processamento de documentos PDF",
}


def premium_feature_message(kind: str) -> str:
    feature = PREMIUM_FEATURES.get(kind, "Este recurso")
    return (
        "🔒 *Recurso Premium*\n\n"
        f"{feature} está disponível apenas no plano Premium.\n\n"
        f"🚀 Faça upgrade em: {app_url('/settings')}"
    )


def trial_expired_message() -> str:
    return (
        "*Seu período de teste expirou!*\n\n"
        "Para continuar usando o PixZen e manter todo seu histórico financeiro, "
        "escolha um de nossos planos:\n\n"
        "🚀 *Planos disponíveis:*\n"
        "• Starter: R$ 9,90/mês\n"
        "• Premium: R$ 19,90/mês\n\n"
        f"👉 Acesse: {app_url('/#pricing')}\n\n"
        "_Seus dados estão salvos e serão mantidos ao assinar!_"
    )


def limit_reached_message(used: int, limit: int) -> str:
    return (
        "⚠️ *Limite mensal atingido!*\n\n"
        f"Você usou {used} de {limit} mensagens este mês.\n\n"
        f"🚀 Faça upgrade do seu plano em:\n{app_url('/settings')}"
    )


def link_code_message(code: str) -> str:
    return (
        "🔗 *Vincule sua conta PixZen!*\n\n"
        "Para usar o assistente financeiro, vincule seu WhatsApp à sua conta PixZen.\n\n"
        f"1️⃣ Acesse: {app_url('/whatsapp')}\n"
        f"2️⃣ Use o código: *{code}*\n\n"
        "O código expira em 10 minutos."
    )


def welcome_link_message() -> str:
    return (
        "*Conta vinculada com sucesso!*\n\n"
        "Agora voce pode registrar suas transacoes diretamente pelo WhatsApp.\n\n"
        "*Como usar:*\n\n"
        "*Texto:* Escreva naturalmente\n"
        '   Ex: "Gastei 50 no mercado"\n'
        '   Ex: "Recebi 1500 de salario"\n\n'
        "*Audio:* Grave um audio descrevendo\n"
        '   Ex: "Paguei 89 reais de internet"\n\n'
        "*Foto:* Envie foto de cupons e recibos\n"
        "   A IA extrai os dados automaticamente\n\n"
        "*Comandos uteis:*\n"
        "   /saldo - Ver resumo do mes\n"
        "   /ajuda - Ver todos os comandos\n\n"
        f"Acesse o app para ver seus graficos e relatorios:\n{app_url()}"
    )

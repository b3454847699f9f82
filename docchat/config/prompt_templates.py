"""
DocChat - Prompt Templates & Fixed Responses
=============================================
All prompts live here so they can be reviewed and versioned
independently of application logic.

Exports
-------
RAG_PROMPT_TEMPLATE, NO_HISTORY_PLACEHOLDER, NO_CONTEXT_PLACEHOLDER,
UPLOAD_CONFIRMATION, ANSWER_FAILED, INGEST_FAILED, EMPTY_REQUEST.
"""

# ══════════════════════════════════════════════════════════════════════
#  RAG PROMPT TEMPLATE
# ══════════════════════════════════════════════════════════════════════
# Placeholders: {history}, {context}, {question}

RAG_PROMPT_TEMPLATE: str = """You are an AI assistant that can have natural conversations.

Rules:
- For casual or general conversation (e.g., greetings, chit-chat, opinions), you can answer freely.
- For technical or factual questions, you MUST rely only on the provided context from the knowledge base.
- If the answer is not present in the context, respond with: "I don't know based on the provided data."
- Never use external knowledge or assumptions for technical details.
- Check the history first if the user asked about something earlier; answer from it if possible, otherwise follow the rules above.

Previous conversation:
{history}

Context from knowledge base:
{context}

Current Question: {question}

Answer:"""

NO_HISTORY_PLACEHOLDER: str = "(No previous conversation.)"
NO_CONTEXT_PLACEHOLDER: str = "(No relevant context found.)"


# ══════════════════════════════════════════════════════════════════════
#  HTTP RESPONSES
# ══════════════════════════════════════════════════════════════════════

UPLOAD_CONFIRMATION: str = "file has been saved successfully! you may now ask queries"
ANSWER_FAILED: str = "Failed to get response"
INGEST_FAILED: str = "Failed to ingest file"
EMPTY_REQUEST: str = "Request must include a message or a file."

# Prompts for the price-table pipeline.
# Tables are Portuguese dental insurance tables, so the prompts are written in
# Portuguese. Both prompts demand JSON-only output with a fixed top-level key.
# Bump the *_PROMPT_VERSION constants whenever the wording changes.

EXTRACTION_PROMPT_VERSION = "v2"
CLASSIFICATION_PROMPT_VERSION = "v1"

# =============================================================================
# PAGE EXTRACTION (one call per OCR'd page, temperature 0)
# =============================================================================
EXTRACTION_SYSTEM_PROMPT = (
    "Você é um parser especializado em tabelas de procedimentos odontológicos. "
    "Extraia dados estruturados do texto fornecido SEM inventar informações."
)

EXTRACTION_USER_PROMPT = r"""
Analise este texto extraído por OCR da página {page_number} de uma tabela de
procedimentos odontológicos e retorne um JSON estruturado.

TEXTO EXTRAÍDO:
{page_text}

INSTRUÇÕES:
1. Encontre códigos que começam com "A" seguido de dígitos separados por pontos
   (ex: A1.01.01.01, A2.02.01.01, A10.05.05.01).
   - Os códigos podem estar em formatos variados: "A1.01.01.01", "A 1.01.01.01", "A1 01 01 01".
   - Retorne SEMPRE o código normalizado (ex: A1.01.01.01).
2. Para cada código encontrado, extraia:
   - code: o código normalizado
   - description: o texto que vem APÓS o código na mesma linha
   - value: o número que representa o valor monetário (pode ter € ou R$).
     Se não houver número ou for "Sem CP", use null.
3. IMPORTANTE: use APENAS dados presentes no texto. Não invente códigos nem descrições.
4. Se uma linha tem código mas a descrição não é legível, use o código como descrição.
5. Retorne APENAS JSON válido no formato:

{{
  "procedures": [
    {{"code": "A1.01.01.01", "description": "Descrição exata", "value": 130.00}},
    {{"code": "A1.01.01.02", "description": "Outra descrição", "value": null}}
  ]
}}

Se não encontrar procedimentos válidos, retorne {{"procedures": []}}
"""

# =============================================================================
# CLASSIFICATION (one call per batch, temperature 0.1)
# =============================================================================
CLASSIFICATION_SYSTEM_PROMPT = (
    "Você é um assistente especializado em procedimentos odontológicos. "
    "Sempre retorne JSON válido sem markdown."
)

CLASSIFICATION_USER_PROMPT = r"""
Classifique cada procedimento odontológico abaixo, extraído da tabela de preços de
um seguro.

PROCEDIMENTOS ({batch_size} itens, em ordem):
{procedures_json}

Para CADA procedimento, na MESMA ORDEM, determine:
- isPericiable: true se o procedimento normalmente exige perícia (avaliação prévia
  ou posterior por um perito do seguro), por exemplo próteses, implantes,
  ortodontia, endodontias e cirurgias. Consultas, higienes e radiografias
  simples normalmente não exigem perícia.
- adultsOnly: true se o procedimento só se aplica a adultos (dentição definitiva,
  próteses, implantes). Procedimentos de odontopediatria ou aplicáveis a qualquer
  idade devem ser false.
- periciableConfidence e adultsOnlyConfidence: número entre 0 e 1.
- reasoning: uma frase curta em português justificando a classificação.

RETORNE APENAS JSON PURO no formato:
{{
  "classifications": [
    {{
      "code": "A1.01.01.01",
      "isPericiable": false,
      "adultsOnly": false,
      "periciableConfidence": 0.9,
      "adultsOnlyConfidence": 0.8,
      "reasoning": "Consulta de rotina, sem perícia e para qualquer idade."
    }}
  ]
}}

IMPORTANTE: o array "classifications" DEVE ter exatamente {batch_size} elementos,
na mesma ordem dos procedimentos recebidos.
"""

# =============================================================================
# CATALOG MATCHING (one call per batch, temperature 0.1)
# =============================================================================
MATCHING_PROMPT_VERSION = "v1"

MATCHING_SYSTEM_PROMPT = (
    "Você é um especialista em procedimentos odontológicos portugueses. "
    "Sempre retorne JSON válido sem markdown."
)

MATCHING_USER_PROMPT = r"""
Faça o pareamento entre procedimentos extraídos do PDF de um seguro e a tabela base
de procedimentos da clínica.

PROCEDIMENTOS EXTRAÍDOS ({batch_size} itens, em ordem):
{procedures_json}

TABELA BASE DE PROCEDIMENTOS:
{catalog_json}

INSTRUÇÕES:
1. Para cada procedimento extraído, encontre o melhor correspondente na tabela base.
2. Compare principalmente as DESCRIÇÕES, não apenas os códigos.
3. Considere sinônimos odontológicos comuns ("restauração" = "obturação",
   "exodontia" = "extração") e variações de escrita ou abreviações.
4. confidenceScore entre 0 e 1:
   - 0.95-1.0: descrições praticamente idênticas
   - 0.85-0.94: mesmo procedimento com pequenas variações
   - 0.70-0.84: procedimentos semelhantes
   - abaixo de 0.70: sem correspondência confiável
5. Se confidenceScore for menor que 0.70, use null em matchedProcedureBaseId.
6. matchedProcedureBaseId deve ser um "id" da tabela base, nunca um código.

RETORNE APENAS JSON PURO no formato:
{{
  "matches": [
    {{
      "extractedCode": "A1.01.01.01",
      "matchedProcedureBaseId": "3f1c2b9e-0000-4000-8000-000000000000",
      "confidenceScore": 0.92,
      "reasoning": "Mesma consulta, descrição abreviada."
    }}
  ]
}}

IMPORTANTE: o array "matches" DEVE ter exatamente {batch_size} elementos, na mesma
ordem dos procedimentos extraídos.
"""

from contentai.llm.factory import (
    get_editor_llm,
    clear_llm_cache,
)

from manus_agent.intent import KeywordIntentExtractor, extract_search_query


def test_no_keywords_no_calls():
    assert KeywordIntentExtractor().extract("The answer is 42.") == []


def test_file_keywords_list_workspace_root():
    for text in ("Checking the FILE system", "我来看看文件"):
        calls = KeywordIntentExtractor().extract(text)

        assert [(c.name, c.arguments) for c in calls] == [
            ("file_operation", {"operation": "list", "directory": ""})
        ]


def test_python_keywords_run_hello_snippet():
    for text in ("Running Python now", "执行代码"):
        calls = KeywordIntentExtractor().extract(text)

        assert [(c.name, c.arguments) for c in calls] == [
            ("python_execute", {"code": "print('Hello from Python!')"})
        ]


def test_search_keyword_uses_following_words_as_query():
    calls = KeywordIntentExtractor().extract("I will Search for asyncio tutorials")

    assert [(c.name, c.arguments) for c in calls] == [
        ("search", {"query": "for asyncio tutorials", "max_results": 3})
    ]


def test_chinese_search_keyword_uses_whole_text():
    calls = KeywordIntentExtractor().extract("我来搜索一下")

    assert calls[0].name == "search"
    assert calls[0].arguments["query"] == "我来搜索一下"


def test_all_templates_fire_in_fixed_order_with_distinct_ids():
    calls = KeywordIntentExtractor().extract("search the file then run python")

    assert [c.name for c in calls] == ["file_operation", "python_execute", "search"]
    assert len({c.id for c in calls}) == 3


def test_extract_search_query_fallbacks():
    assert extract_search_query("research quantum computing") == "quantum computing"
    assert extract_search_query("nothing to look up") == "nothing to look up"
    assert extract_search_query("just search") == "just search"

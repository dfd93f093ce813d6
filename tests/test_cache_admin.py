from __future__ import annotations

import pytest

from stacq.tools import cache_admin


def test_key_command_prints_sorted_key(capsys):
    assert cache_admin.main(["key", "stacks:public", "offset=0", "limit=20"]) == 0

    assert capsys.readouterr().out.strip() == "supabase:stacks:public:limit:20|offset:0"


def test_key_command_rejects_malformed_params():
    with pytest.raises(SystemExit):
        cache_admin.main(["key", "stacks:public", "limit"])


def test_invalidate_without_redis_deletes_nothing(capsys):
    assert cache_admin.main(["invalidate", "supabase:feed:*"]) == 0

    assert capsys.readouterr().out.strip() == "deleted 0 keys matching supabase:feed:*"


def test_clear_without_redis_reports_not_found(capsys):
    assert cache_admin.main(["clear", "supabase:feed:"]) == 0

    assert capsys.readouterr().out.strip() == "not found supabase:feed:"

import pytest

from kvscope.protocol import commands
from kvscope.protocol.commands import LOG_INTERNAL, LOG_USER, Command, from_text, quote_arg, split_command_line


def test_builders_produce_expected_arguments() -> None:
    assert commands.scan(0, "user:*", 50).args == (b"SCAN", b"0", b"MATCH", b"user:*", b"COUNT", b"50")
    assert commands.scan(17).args == (b"SCAN", b"17", b"MATCH", b"*")
    assert commands.key_type(b"k").args == (b"TYPE", b"k")
    assert commands.key_ttl("k").args == (b"TTL", b"k")
    assert commands.db_size().args == (b"DBSIZE",)
    assert commands.config_get().args == (b"CONFIG", b"GET", b"*")
    assert commands.config_set("maxmemory", "100mb").args == (b"CONFIG", b"SET", b"maxmemory", b"100mb")
    assert commands.set_password("s3cret").args == (b"CONFIG", b"SET", b"requirepass", b"s3cret")
    assert commands.set_max_connections(128).args == (b"CONFIG", b"SET", b"maxclients", b"128")
    assert commands.pubsub_channels().args == (b"PUBSUB", b"CHANNELS")
    assert commands.pubsub_channels("news.*").args == (b"PUBSUB", b"CHANNELS", b"news.*")
    assert commands.pubsub_numsub(b"news").args == (b"PUBSUB", b"NUMSUB", b"news")
    assert commands.save().args == (b"SAVE",)
    assert commands.select("3").args == (b"SELECT", b"3")


def test_builders_are_internal_commands() -> None:
    command = commands.key_type("k")
    assert command.logging_type == LOG_INTERNAL
    assert not command.user_visible
    assert command.name == "TYPE"


def test_builders_reject_empty_names() -> None:
    with pytest.raises(ValueError):
        commands.key_type("")
    with pytest.raises(ValueError):
        commands.key_ttl(b"")
    with pytest.raises(ValueError):
        commands.pubsub_numsub("")
    with pytest.raises(ValueError):
        commands.config_set("", "v")
    with pytest.raises(ValueError):
        commands.set_max_connections(0)
    with pytest.raises(ValueError):
        commands.scan(-1)


def test_command_requires_arguments_and_known_logging_type() -> None:
    with pytest.raises(ValueError):
        Command(())
    with pytest.raises(ValueError):
        Command((b"PING",), "debug")


def test_split_command_line_handles_quotes_and_escapes() -> None:
    assert split_command_line('SET "my key" value') == [b"SET", b"my key", b"value"]
    assert split_command_line("SET 'it\\'s' x") == [b"SET", b"it's", b"x"]
    assert split_command_line('ECHO "a\\nb" "\\x41\\x42"') == [b"ECHO", b"a\nb", b"AB"]
    assert split_command_line("   PING   ") == [b"PING"]
    assert split_command_line("") == []


def test_split_command_line_rejects_bad_quoting() -> None:
    with pytest.raises(ValueError):
        split_command_line('SET "open')
    with pytest.raises(ValueError):
        split_command_line("SET 'open")
    with pytest.raises(ValueError):
        split_command_line('SET "a"b')


def test_from_text_builds_user_commands() -> None:
    command = from_text('get "a b"')
    assert command.args == (b"get", b"a b")
    assert command.logging_type == LOG_USER
    assert command.name == "GET"
    with pytest.raises(ValueError):
        from_text("   ")


def test_command_line_quotes_only_when_needed() -> None:
    assert quote_arg(b"plain") == "plain"
    assert quote_arg(b"") == '""'
    assert quote_arg(b"two words") == '"two words"'
    assert quote_arg(b'say "hi"') == '"say \\"hi\\""'
    assert quote_arg(b"\x00\xff") == '"\\x00\\xff"'
    assert commands.config_set("requirepass", "a b").command_line == 'CONFIG SET requirepass "a b"'


def test_command_line_splits_back_to_the_same_arguments() -> None:
    command = commands.make_command("SET", b"k\x01 \"q\"", "line\nbreak")
    assert tuple(split_command_line(command.command_line)) == command.args


def test_log_line_masks_password_arguments() -> None:
    assert commands.set_password("hunter2").log_line == "CONFIG SET requirepass ***"
    assert from_text("config set masterauth s3 maxmemory 10mb").log_line == "config set masterauth *** maxmemory 10mb"
    assert from_text("AUTH hunter2").log_line == "AUTH ***"
    assert from_text("HELLO 2 AUTH admin hunter2").log_line == "HELLO 2 AUTH admin ***"
    assert commands.config_set("timeout", "60").log_line == "CONFIG SET timeout 60"
    assert str(commands.set_password("hunter2")) == "CONFIG SET requirepass ***"
    assert commands.set_password("hunter2").command_line == "CONFIG SET requirepass hunter2"

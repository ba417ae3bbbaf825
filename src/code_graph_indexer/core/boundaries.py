"""System-boundary classification for third-party imports.

An external import specifier is reduced to a package name and tagged with a
coarse functional category (payment, database, cache, ...). Categories come
from curated per-ecosystem prefix tables; the longest matching prefix wins so
that e.g. `@aws-sdk/client-sqs` (messaging) beats `@aws-sdk` (cloud).
"""

from __future__ import annotations

import sys
from typing import Optional


DEFAULT_CATEGORY = "third-party"

BOUNDARY_CATEGORIES: tuple[str, ...] = (
    "payment",
    "database",
    "cache",
    "messaging",
    "auth",
    "cloud",
    "monitoring",
    "http-client",
    "testing",
    "ui-framework",
    "ai-ml",
    DEFAULT_CATEGORY,
)

NPM_CATEGORIES: dict[str, str] = {
    "stripe": "payment",
    "braintree": "payment",
    "paypal": "payment",
    "@paypal": "payment",
    "@paddle": "payment",
    "razorpay": "payment",
    "pg": "database",
    "mysql2": "database",
    "mongoose": "database",
    "mongodb": "database",
    "@prisma": "database",
    "prisma": "database",
    "typeorm": "database",
    "drizzle-orm": "database",
    "knex": "database",
    "sequelize": "database",
    "arangojs": "database",
    "@supabase": "database",
    "better-sqlite3": "database",
    "sqlite3": "database",
    "neo4j-driver": "database",
    "ioredis": "cache",
    "redis": "cache",
    "memcached": "cache",
    "lru-cache": "cache",
    "amqplib": "messaging",
    "kafkajs": "messaging",
    "@aws-sdk/client-sqs": "messaging",
    "@aws-sdk/client-sns": "messaging",
    "bullmq": "messaging",
    "bull": "messaging",
    "@temporalio": "messaging",
    "passport": "auth",
    "better-auth": "auth",
    "jsonwebtoken": "auth",
    "jose": "auth",
    "@auth": "auth",
    "next-auth": "auth",
    "@clerk": "auth",
    "@aws-sdk": "cloud",
    "@google-cloud": "cloud",
    "@azure": "cloud",
    "firebase": "cloud",
    "firebase-admin": "cloud",
    "@sentry": "monitoring",
    "pino": "monitoring",
    "winston": "monitoring",
    "dd-trace": "monitoring",
    "@opentelemetry": "monitoring",
    "newrelic": "monitoring",
    "axios": "http-client",
    "node-fetch": "http-client",
    "undici": "http-client",
    "got": "http-client",
    "ky": "http-client",
    "@octokit": "http-client",
    "vitest": "testing",
    "jest": "testing",
    "mocha": "testing",
    "@playwright": "testing",
    "cypress": "testing",
    "supertest": "testing",
    "@testing-library": "testing",
    "react": "ui-framework",
    "react-dom": "ui-framework",
    "vue": "ui-framework",
    "@angular": "ui-framework",
    "svelte": "ui-framework",
    "next": "ui-framework",
    "nuxt": "ui-framework",
    "@ai-sdk": "ai-ml",
    "ai": "ai-ml",
    "openai": "ai-ml",
    "@anthropic-ai": "ai-ml",
    "@google/generative-ai": "ai-ml",
    "langchain": "ai-ml",
    "@langchain": "ai-ml",
    "llamaindex": "ai-ml",
}

PYTHON_CATEGORIES: dict[str, str] = {
    "stripe": "payment",
    "braintree": "payment",
    "sqlalchemy": "database",
    "django.db": "database",
    "psycopg": "database",
    "psycopg2": "database",
    "asyncpg": "database",
    "pymongo": "database",
    "motor": "database",
    "neo4j": "database",
    "peewee": "database",
    "redis": "cache",
    "pymemcache": "cache",
    "celery": "messaging",
    "pika": "messaging",
    "kafka": "messaging",
    "confluent_kafka": "messaging",
    "aio_pika": "messaging",
    "jwt": "auth",
    "authlib": "auth",
    "msal": "auth",
    "passlib": "auth",
    "boto3": "cloud",
    "botocore": "cloud",
    "google.cloud": "cloud",
    "azure": "cloud",
    "requests": "http-client",
    "httpx": "http-client",
    "aiohttp": "http-client",
    "urllib3": "http-client",
    "sentry_sdk": "monitoring",
    "opentelemetry": "monitoring",
    "prometheus_client": "monitoring",
    "structlog": "monitoring",
    "pytest": "testing",
    "unittest": "testing",
    "hypothesis": "testing",
    "flask": "ui-framework",
    "django": "ui-framework",
    "fastapi": "ui-framework",
    "starlette": "ui-framework",
    "openai": "ai-ml",
    "anthropic": "ai-ml",
    "langchain": "ai-ml",
    "langchain_core": "ai-ml",
    "langgraph": "ai-ml",
    "transformers": "ai-ml",
    "torch": "ai-ml",
    "sklearn": "ai-ml",
}

GO_CATEGORIES: dict[str, str] = {
    "github.com/stripe": "payment",
    "gorm.io": "database",
    "github.com/jackc/pgx": "database",
    "github.com/lib/pq": "database",
    "github.com/go-sql-driver": "database",
    "go.mongodb.org": "database",
    "github.com/go-redis": "cache",
    "github.com/redis/go-redis": "cache",
    "github.com/nats-io": "messaging",
    "github.com/segmentio/kafka-go": "messaging",
    "github.com/rabbitmq": "messaging",
    "github.com/golang-jwt": "auth",
    "github.com/aws/aws-sdk-go": "cloud",
    "github.com/aws/aws-sdk-go-v2": "cloud",
    "cloud.google.com": "cloud",
    "github.com/getsentry/sentry-go": "monitoring",
    "go.opentelemetry.io": "monitoring",
    "go.uber.org/zap": "monitoring",
    "github.com/stretchr/testify": "testing",
    "github.com/gin-gonic": "ui-framework",
    "github.com/labstack/echo": "ui-framework",
    "github.com/gofiber": "ui-framework",
    "github.com/sashabaranov/go-openai": "ai-ml",
}

JAVA_CATEGORIES: dict[str, str] = {
    "com.stripe": "payment",
    "org.hibernate": "database",
    "org.springframework.data": "database",
    "org.springframework.jdbc": "database",
    "redis.clients": "cache",
    "org.apache.kafka": "messaging",
    "com.rabbitmq": "messaging",
    "org.springframework.security": "auth",
    "io.jsonwebtoken": "auth",
    "software.amazon.awssdk": "cloud",
    "com.amazonaws": "cloud",
    "com.google.cloud": "cloud",
    "io.sentry": "monitoring",
    "io.opentelemetry": "monitoring",
    "org.slf4j": "monitoring",
    "okhttp3": "http-client",
    "org.apache.http": "http-client",
    "org.junit": "testing",
    "junit": "testing",
    "org.mockito": "testing",
    "org.springframework.web": "ui-framework",
    "org.springframework.boot": "ui-framework",
}

RUST_CATEGORIES: dict[str, str] = {
    "stripe": "payment",
    "async_stripe": "payment",
    "sqlx": "database",
    "diesel": "database",
    "sea_orm": "database",
    "mongodb": "database",
    "redis": "cache",
    "lapin": "messaging",
    "rdkafka": "messaging",
    "jsonwebtoken": "auth",
    "aws_sdk_s3": "cloud",
    "aws_config": "cloud",
    "tracing": "monitoring",
    "sentry": "monitoring",
    "opentelemetry": "monitoring",
    "reqwest": "http-client",
    "hyper": "http-client",
    "mockall": "testing",
    "axum": "ui-framework",
    "actix_web": "ui-framework",
    "rocket": "ui-framework",
    "async_openai": "ai-ml",
}

RUBY_CATEGORIES: dict[str, str] = {
    "stripe": "payment",
    "active_record": "database",
    "pg": "database",
    "mongoid": "database",
    "sequel": "database",
    "redis": "cache",
    "dalli": "cache",
    "sidekiq": "messaging",
    "bunny": "messaging",
    "devise": "auth",
    "jwt": "auth",
    "omniauth": "auth",
    "aws-sdk": "cloud",
    "google/cloud": "cloud",
    "sentry-ruby": "monitoring",
    "faraday": "http-client",
    "httparty": "http-client",
    "net/http": "http-client",
    "rspec": "testing",
    "minitest": "testing",
    "rails": "ui-framework",
    "sinatra": "ui-framework",
    "openai": "ai-ml",
}

PHP_CATEGORIES: dict[str, str] = {
    "Stripe": "payment",
    "Doctrine": "database",
    "Illuminate\\Database": "database",
    "Predis": "cache",
    "PhpAmqpLib": "messaging",
    "Firebase\\JWT": "auth",
    "Aws": "cloud",
    "Google\\Cloud": "cloud",
    "Sentry": "monitoring",
    "Monolog": "monitoring",
    "GuzzleHttp": "http-client",
    "PHPUnit": "testing",
    "Illuminate": "ui-framework",
    "Symfony": "ui-framework",
    "OpenAI": "ai-ml",
}

CSHARP_CATEGORIES: dict[str, str] = {
    "Stripe": "payment",
    "Microsoft.EntityFrameworkCore": "database",
    "Dapper": "database",
    "Npgsql": "database",
    "MongoDB": "database",
    "StackExchange.Redis": "cache",
    "MassTransit": "messaging",
    "RabbitMQ": "messaging",
    "Confluent.Kafka": "messaging",
    "Microsoft.AspNetCore.Authentication": "auth",
    "Microsoft.Identity": "auth",
    "Amazon": "cloud",
    "Azure": "cloud",
    "Google.Cloud": "cloud",
    "Sentry": "monitoring",
    "Serilog": "monitoring",
    "OpenTelemetry": "monitoring",
    "System.Net.Http": "http-client",
    "RestSharp": "http-client",
    "Xunit": "testing",
    "NUnit": "testing",
    "Moq": "testing",
    "Microsoft.AspNetCore": "ui-framework",
    "OpenAI": "ai-ml",
}

CATEGORY_TABLES: dict[str, dict[str, str]] = {
    "typescript": NPM_CATEGORIES,
    "javascript": NPM_CATEGORIES,
    "python": PYTHON_CATEGORIES,
    "go": GO_CATEGORIES,
    "java": JAVA_CATEGORIES,
    "rust": RUST_CATEGORIES,
    "ruby": RUBY_CATEGORIES,
    "php": PHP_CATEGORIES,
    "csharp": CSHARP_CATEGORIES,
}

NODE_BUILTINS: frozenset[str] = frozenset(
    {
        "assert", "buffer", "child_process", "cluster", "crypto", "dgram", "dns", "events",
        "fs", "http", "http2", "https", "net", "os", "path", "perf_hooks", "process",
        "querystring", "readline", "stream", "string_decoder", "timers", "tls", "url",
        "util", "v8", "vm", "worker_threads", "zlib",
    }
)

RUST_BUILTIN_CRATES: frozenset[str] = frozenset({"std", "core", "alloc", "proc_macro", "test"})

RUBY_STDLIB: frozenset[str] = frozenset(
    {
        "json", "set", "time", "date", "fileutils", "pathname", "securerandom", "digest",
        "yaml", "erb", "logger", "optparse", "open3", "tempfile", "benchmark", "csv",
        "uri", "socket", "stringio", "forwardable", "singleton", "English",
    }
)

CSHARP_STDLIB_ROOTS: tuple[str, ...] = ("System", "Microsoft.Extensions", "Microsoft.CSharp")

C_STDLIB_HEADERS: frozenset[str] = frozenset(
    {
        "assert.h", "ctype.h", "errno.h", "float.h", "limits.h", "locale.h", "math.h",
        "setjmp.h", "signal.h", "stdarg.h", "stdbool.h", "stddef.h", "stdint.h", "stdio.h",
        "stdlib.h", "string.h", "time.h", "unistd.h", "pthread.h", "fcntl.h",
    }
)


def _separator(language: str) -> str:
    if language in ("python", "java", "csharp"):
        return "."
    if language == "php":
        return "\\"
    if language == "rust":
        return "::"
    return "/"


def classify_boundary(specifier: str, language: str) -> str:
    """Category for an external import, by longest prefix match; default "third-party"."""

    table = CATEGORY_TABLES.get(language)
    if not table or not specifier:
        return DEFAULT_CATEGORY
    sep = _separator(language)
    best: Optional[str] = None
    for prefix in table:
        if specifier == prefix or specifier.startswith(prefix + sep) or specifier.startswith(prefix + "/"):
            if best is None or len(prefix) > len(best):
                best = prefix
    return table[best] if best is not None else DEFAULT_CATEGORY


def is_stdlib(specifier: str, language: str) -> bool:
    """True when an import resolves to the language's standard library."""

    if language in ("typescript", "javascript"):
        return specifier.startswith("node:") or specifier.split("/")[0] in NODE_BUILTINS
    if language == "python":
        return specifier.split(".")[0] in sys.stdlib_module_names
    if language == "go":
        return "." not in specifier.split("/")[0]
    if language == "java":
        return specifier.startswith(("java.", "javax.", "sun.", "jdk."))
    if language == "rust":
        return specifier.split("::")[0] in RUST_BUILTIN_CRATES
    if language == "ruby":
        return specifier.split("/")[0] in RUBY_STDLIB
    if language == "csharp":
        return any(specifier == r or specifier.startswith(r + ".") for r in CSHARP_STDLIB_ROOTS)
    if language in ("c", "cpp"):
        return specifier in C_STDLIB_HEADERS or ("." not in specifier and "/" not in specifier)
    return False


def external_package_name(specifier: str, language: str) -> str:
    """Reduce an external import specifier to its package name."""

    if language in ("typescript", "javascript"):
        spec = specifier[len("node:"):] if specifier.startswith("node:") else specifier
        parts = spec.split("/")
        if spec.startswith("@") and len(parts) >= 2:
            return f"{parts[0]}/{parts[1]}"
        return parts[0]
    if language == "python":
        return specifier.split(".")[0]
    if language == "go":
        parts = specifier.split("/")
        if parts[0] in ("github.com", "gitlab.com", "bitbucket.org") and len(parts) >= 3:
            return "/".join(parts[:3])
        return specifier
    if language == "java":
        return ".".join(specifier.split(".")[:3])
    if language == "rust":
        return specifier.split("::")[0]
    if language == "ruby":
        return specifier.split("/")[0]
    if language == "php":
        return "\\".join(specifier.lstrip("\\").split("\\")[:2])
    if language == "csharp":
        return ".".join(specifier.split(".")[:2])
    if language in ("c", "cpp"):
        return specifier.split("/")[0]
    return specifier
